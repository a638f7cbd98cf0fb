"""
Desktop Control Agent - Main Entry Point
Turns spoken (transcribed) commands into validated, confirmed desktop actions.

Pipeline:
- Intent Parser: command text -> intent (regex, no model call)
- Vision Planner: screenshot + task -> action plan (Ollama VLM)
- Safety Gate: static rules + human confirmation
- Execution Engine: rate-limited pyautogui primitives with an audit history

Run with:
    python main.py [--config config/agent_config.yaml] [--verbose]
"""
import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Configure UTF-8 output for Windows console (prevents Unicode crashes)
# MUST be done before any logging or print statements
for _stream in (sys.stdout, sys.stderr):
    if hasattr(_stream, "reconfigure"):
        _stream.reconfigure(encoding="utf-8", errors="replace")

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from common import constants
from config.config_validator import load_validated_config
from execution.controller import DesktopController
from interface.console_client import ConsoleClient
from logic.orchestrator import ComputerControlOrchestrator
from perception.vision_client import VisionClient

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Console + rotating file handler on the root logger."""
    log_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), constants.LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Console handler (uses UTF-8 configured stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    # Rotating file handler: 5 MB max, keep 3 backups
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "agent.log"),
        maxBytes=constants.LOG_MAX_BYTES,
        backupCount=constants.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    logging.basicConfig(level=min(level, logging.INFO), handlers=[console_handler, file_handler])


class Agent:
    """
    Owns one orchestrator and the collaborators it needs.

    All state (rate windows, history, pending confirmations) lives on this
    instance and is lost on exit.
    """

    def __init__(self, config_path: str = constants.CONFIG_PATH, controller=None, vision_client=None):
        """Initialize the agent and all modules."""
        logger.info("=" * 60)
        logger.info("Initializing Desktop Control Agent")
        logger.info("=" * 60)

        self.config = self._load_config(config_path)

        execution = self.config.get("execution", {})
        self.controller = controller or DesktopController(
            pause=execution.get("mouse_pause", constants.MOUSE_PAUSE_SECS),
            failsafe=True,
        )
        logger.info("[OK] Desktop controller ready")

        vision = self.config.get("vision", {})
        self.vision_client = vision_client or VisionClient(
            base_url=vision.get("base_url", constants.VISION_BASE_URL),
            model=vision.get("model", constants.VISION_MODEL),
            timeout=vision.get("timeout", constants.VISION_REQUEST_TIMEOUT_SECS),
            temperature=vision.get("temperature", constants.VISION_TEMPERATURE),
            max_tokens=vision.get("max_tokens", constants.VISION_MAX_TOKENS),
        )
        if vision.get("enabled", True) and self.vision_client.health_check():
            logger.info(f"[OK] Vision model available: {self.vision_client.model}")
        else:
            logger.warning("[FAIL] Vision model unavailable - vision-guided commands will report errors")

        self.orchestrator = ComputerControlOrchestrator.from_config(
            self.config, self.controller, vision_client=self.vision_client
        )
        logger.info(f"Computer control {'enabled' if self.config.get('enabled', True) else 'disabled'}")

    def _load_config(self, config_path: str) -> dict:
        path = Path(config_path)
        if not path.is_absolute():
            path = Path(__file__).parent / path
        config = load_validated_config(str(path))
        logger.info(f"Loaded config from {path}")
        return config

    def cleanup(self) -> None:
        pending = self.orchestrator.safety_gate.pending_count
        if pending:
            logger.info(f"Discarding {pending} pending confirmation(s)")
        logger.info("Agent shutdown complete")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Voice-driven desktop control agent (console mode)")
    parser.add_argument("--config", default=constants.CONFIG_PATH, help="Path to agent_config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Show per-action results and debug logs")
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        agent = Agent(config_path=args.config)
    except ValueError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    client = ConsoleClient(agent.orchestrator, verbose=args.verbose)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        agent.cleanup()
    return 0


if __name__ == "__main__":
    sys.exit(main())
