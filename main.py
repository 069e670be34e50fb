#!/usr/bin/env python3

import argparse
import asyncio
import logging
import traceback
from datetime import datetime

from game_interface import JerichoInterface
from llm_client import LLMClient
from logger import setup_logging
from managers.context_manager import ContextManager
from managers.exploration_policy import ExplorationPolicy
from managers.world_memory import WorldMemory
from orchestration import EventSink, LogEntryType, TurnError, TurnOrchestrator
from session.game_configuration import GameConfiguration
from session.game_state import GameState
from zork_advisor import ZorkAdvisor
from zork_agent import ZorkAgent


def build_orchestrator(config: GameConfiguration, logger) -> TurnOrchestrator:
    """Wire one session's components around a fresh engine and memory."""
    game_state = GameState()
    events = EventSink()

    engine = JerichoInterface(
        config.game_file_path,
        settle_timeout=config.engine_settle_timeout_seconds,
        logger=logger,
    )
    memory = WorldMemory(logger=logger, config=config, game_state=game_state)
    policy = ExplorationPolicy(memory, logger=logger, game_state=game_state)

    agent = ZorkAgent(config, client=LLMClient.for_role(config, "agent", logger=logger), logger=logger)
    advisor = ZorkAdvisor(config, client=LLMClient.for_role(config, "advisor", logger=logger), logger=logger)
    context_manager = ContextManager(
        logger,
        config,
        game_state,
        memory,
        client=LLMClient.for_role(config, "summary", logger=logger),
    )

    return TurnOrchestrator(
        config,
        engine,
        agent,
        advisor,
        memory,
        policy,
        context_manager,
        game_state=game_state,
        logger=logger,
        events=events,
    )


def print_entry(entry) -> None:
    if entry.type is LogEntryType.GAME_TEXT:
        print(f"\n{entry.content}\n", flush=True)
    elif entry.type is LogEntryType.COMMAND_SENT:
        print(f"> {entry.content}", flush=True)


async def run_session(orchestrator: TurnOrchestrator, args) -> None:
    await orchestrator.initialize(episode_id=args.episode_id)

    if args.command:
        await orchestrator.send_manual_command(args.command)
    elif args.step:
        await orchestrator.step()
    else:
        await orchestrator.start(max_turns=args.max_turns)


def run_episode(args) -> None:
    """Run one session from the command line."""
    config = GameConfiguration.from_toml()
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logger = setup_logging(config.episode_log_file, config.json_log_file, log_level)

    if args.episode_id is None:
        args.episode_id = datetime.now().strftime("%Y-%m-%dT%H:%M:%S")

    orchestrator = build_orchestrator(config, logger)
    orchestrator.events.subscribe(on_entry=print_entry)

    print("🚀 Starting ZorkScaffold session...", flush=True)
    print("📋 Configuration:", flush=True)
    print(f"  - Game file: {config.game_file_path}", flush=True)
    print(f"  - Agent model: {config.agent_model}", flush=True)
    print(f"  - Max turns: {args.max_turns or config.max_turns_per_episode}", flush=True)
    print(f"  - Summary interval: {config.summary_interval} turns", flush=True)
    print(f"  - Advisory interval: {config.advisory_interval} turns", flush=True)
    print(f"  - Turn delay: {config.turn_delay_seconds} seconds", flush=True)
    print(flush=True)

    try:
        asyncio.run(run_session(orchestrator, args))
    except KeyboardInterrupt:
        orchestrator.stop()
        print("\n\n🛑 Interrupted by user (Ctrl-C)")
    except TurnError as e:
        print(f"❌ Session failed: {e}")
        traceback.print_exc()
    finally:
        orchestrator.engine.close()

    report = orchestrator.get_session_report()
    logger.info(
        f"Session {report['session']['episode_id']} ended after {report['session']['turn_count']} turns",
        extra={"event_type": "session_report", **report},
    )

    state = orchestrator.game_state
    print("\n🎯 Session ended")
    print(f"  - Turns played: {state.turn_count}")
    print(f"  - Episode ID: {state.episode_id}")
    print(f"  - Final phase: {state.phase.value}")
    print(f"  - Rooms visited: {len(orchestrator.memory.rooms)}")
    print(f"  - Exploration: {report['exploration']}")


def cli() -> None:
    parser = argparse.ArgumentParser(description="Run a ZorkScaffold session")
    parser.add_argument(
        "--max-turns",
        type=int,
        default=None,
        help="Maximum number of turns for autoplay",
    )
    parser.add_argument(
        "--episode-id", default=None, help="Episode identifier (defaults to a timestamp)"
    )
    parser.add_argument(
        "--step", action="store_true", help="Play a single turn and exit"
    )
    parser.add_argument(
        "--command", default=None, help="Send one manual command instead of asking the model"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )

    args = parser.parse_args()
    print("=" * 60, flush=True)
    run_episode(args)


if __name__ == "__main__":
    cli()
