"""
Intent Parser Test Suite
Table-driven checks of keyword detection, classification and extraction.
"""
import pytest

from common.actions import KeyPress, Scroll, TypeText
from logic.intent_parser import Intent, IntentParser


@pytest.fixture
def parser():
    return IntentParser()


@pytest.mark.parametrize("command, action, target", [
    ("open chrome", "open", "chrome"),
    ("Launch Visual Studio Code", "open", "vscode"),
    ("start vs code", "open", "vscode"),
    ("close spotify", "close", "spotify"),
    ("quit the app", "close", None),
    ("click on the submit button", "click", "submit"),
    ("double click the folder", "double_click", "folder"),
    ("right click on desktop", "right_click", "desktop"),
])
def test_classification_with_targets(parser, command, action, target):
    intent = parser.analyze(command)
    assert intent.requires_control is True
    assert intent.action == action
    assert intent.target == target
    assert intent.confidence == 0.7


@pytest.mark.parametrize("command, expected_text", [
    ("type Hello World", "Hello World"),
    ('type "Mixed Case Text"', "Mixed Case Text"),
    ("write 'quoted note'", "quoted note"),
    ("type", ""),
])
def test_typed_text_keeps_original_casing(parser, command, expected_text):
    intent = parser.analyze(command)
    assert intent.action == "type"
    assert intent.parameters["text"] == expected_text


@pytest.mark.parametrize("command, direction", [
    ("scroll up", "up"),
    ("scroll down a bit", "down"),
    ("scroll", "down"),
])
def test_scroll_direction(parser, command, direction):
    intent = parser.analyze(command)
    assert intent.action == "scroll"
    assert intent.parameters["direction"] == direction


@pytest.mark.parametrize("command, query", [
    ("search for python tutorials", "python tutorials"),
    ('find "Quarterly Report"', "Quarterly Report"),
    ("look for my keys and search", "my keys and search"),
])
def test_search_query(parser, command, query):
    intent = parser.analyze(command)
    assert intent.action == "search"
    assert intent.parameters["query"] == query


@pytest.mark.parametrize("command, key, modifiers", [
    ("press enter", "enter", []),
    ("press alt ctrl delete", "delete", ["alt", "ctrl"]),
    ("press ctrl+s", "s", ["ctrl"]),
    ("press control shift t", "t", ["ctrl", "shift"]),
    ("press the escape key", "escape", []),
    ("press shift", "shift", []),
])
def test_key_press_splits_modifiers(parser, command, key, modifiers):
    intent = parser.analyze(command)
    assert intent.action == "key_press"
    assert intent.parameters["key"] == key
    assert intent.parameters["modifiers"] == modifiers


def test_screenshot_has_high_confidence(parser):
    intent = parser.analyze("take a screenshot")
    assert intent.action == "screenshot"
    assert intent.confidence == 0.9


def test_generic_intent_has_low_confidence(parser):
    intent = parser.analyze("paste it")
    assert intent.action == "generic"
    assert intent.confidence == 0.5


@pytest.mark.parametrize("command", ["hello there", "tell me a joke", "", "the weather is nice"])
def test_no_control_keyword(parser, command):
    intent = parser.analyze(command)
    assert intent.requires_control is False
    assert intent.confidence == 0.0
    assert intent.action is None


@pytest.mark.parametrize("command, expected", [
    ("what is the weather", True),
    ("how are you", True),
    ("Could you tell me a joke", True),
    ("can you open chrome", False),
    ("what is on my screen", False),
    ("open chrome", False),
])
def test_is_question(parser, command, expected):
    assert parser.is_question(command) is expected


@pytest.mark.parametrize("action, expected", [
    ("click", True), ("double_click", True), ("right_click", True),
    ("search", True), ("open", True), ("close", True), ("generic", True),
    ("type", False), ("scroll", False), ("key_press", False), ("screenshot", False),
])
def test_needs_vision(parser, action, expected):
    assert parser.needs_vision(Intent(requires_control=True, confidence=0.7, action=action)) is expected


@pytest.mark.parametrize("command, task", [
    ("open chrome", "Open chrome"),
    ("close it", "Close the current application"),
    ("right click on desktop", "right click on desktop"),
    ("search for cats", 'Search for "cats"'),
    ("press ctrl s", "Press ctrl+s"),
])
def test_task_description(parser, command, task):
    assert parser.to_task_description(parser.analyze(command)) == task


def test_simple_actions_for_non_vision_intents(parser):
    [typed] = parser.create_simple_actions(parser.analyze("type Hello"))
    assert typed == TypeText(text="Hello", description="Type: Hello")

    [scroll] = parser.create_simple_actions(parser.analyze("scroll up"))
    assert isinstance(scroll, Scroll)
    assert (scroll.direction, scroll.amount) == ("up", 3)

    [key] = parser.create_simple_actions(parser.analyze("press alt ctrl delete"))
    assert isinstance(key, KeyPress)
    assert key.key == "delete"
    assert key.modifiers == ("alt", "ctrl")
    assert key.description == "Press alt+ctrl+delete"


def test_no_simple_actions_for_vision_intents(parser):
    assert parser.create_simple_actions(parser.analyze("open chrome")) == []
    assert parser.create_simple_actions(parser.analyze("click the button")) == []


def test_analyze_never_raises_on_odd_input(parser):
    for command in [None, "   ", "press", "click", "type '", "search"]:
        intent = parser.analyze(command)
        assert isinstance(intent, Intent)
