#!/usr/bin/env python3
"""Simple CLI runner for playing a fieldglow session without a phone."""

import argparse
import asyncio

from game.config import GameConfig
from game.logging import configure_logging, get_logger
from game.session import GameSession
from game.state import GamePhase
from game.time import format_duration
from spatial.geo import Coordinate, bearing_degrees, distance_meters

logger = get_logger(__name__)


def build_session(args) -> GameSession:
    """Session configured from the command line flags."""
    config = GameConfig(fake_sensors=args.fake_sensors)
    return GameSession(config=config, seed=args.seed)


async def print_feedback(feedback):
    """Print feedback effects as they occur."""
    print(f"[{format_duration(feedback.timestamp_ms)}] {feedback.feedback_type.value}: {feedback.data}")


def print_snapshot(session: GameSession) -> None:
    snapshot = session.snapshot()
    stats = snapshot["stats"]
    print(f"\n  state:     {snapshot['state']} ({snapshot['message']})")
    print(f"  heading:   {snapshot['heading']:.1f}")
    print(f"  home:      {snapshot['distance_to_home']:.1f} m")
    print(f"  nodes:     {len(snapshot['nodes'])} ({sum(1 for n in snapshot['nodes'] if n['captured'])} captured)")
    print(f"  companions: {len(snapshot['companions'])}")
    print(f"  walked:    {stats['distance_walked']:.1f} m, rewards {stats['rewards_collected']}")
    print()


async def face(session: GameSession, target: Coordinate) -> float:
    """Turn toward ``target`` and return the distance to it."""
    position = session.state.current_pos
    bearing = bearing_degrees(position, target)
    delta = ((bearing - session.state.heading + 540.0) % 360.0) - 180.0
    await session.simulate_turn(delta)
    return distance_meters(position, target)


async def wait_for_phase(session: GameSession, phases: set[GamePhase], timeout: float) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while session.state.phase not in phases:
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.05)
    return True


async def capture_nearest(session: GameSession) -> bool:
    """Walk up to the nearest live node and hold until it is captured."""
    nodes = session.state.active_nodes()
    if not nodes:
        return False

    position = session.state.current_pos
    node = min(nodes, key=lambda n: distance_meters(position, n.geo_position))

    dist = await face(session, node.geo_position)
    await session.simulate_move(max(0.0, dist - 3.0))

    if session.state.phase != GamePhase.CAPTURE_READY:
        logger.warning("demo.not_ready", node_id=node.id, state=session.state.phase.value)
        return False

    await session.begin_capture()
    timeout = session.config.capture_time_core_ms / 1000.0 + 2.0
    if not await wait_for_phase(session, {GamePhase.CARRYING}, timeout):
        await session.end_capture()
        return False

    await wait_for_phase(session, {GamePhase.OUTDOOR_SEARCH, GamePhase.CAPTURE_READY}, 2.0)
    return True


async def run_demo(args):
    """Scripted walk: capture a few nodes, return home and evacuate."""
    configure_logging(args.log_level)

    logger.info("demo.starting", seed=args.seed, fake_sensors=args.fake_sensors)

    session = build_session(args)

    try:
        await session.initialize()
        session.add_feedback_listener(print_feedback)

        origin = Coordinate(latitude=args.lat, longitude=args.lon)
        await session.start(origin, heading=0.0)
        print_snapshot(session)

        for _ in range(args.captures):
            if not await capture_nearest(session):
                break
            print_snapshot(session)

        nearby = session.query_nodes_in_radius(100.0)
        print(f"Nodes within 100 m: {len(nearby)}")

        # Head back and tell the game we are home
        dist = await face(session, origin)
        await session.simulate_move(dist)
        await session.toggle_manual_home()

        if session.state.phase == GamePhase.EVAC_READY:
            await session.evacuate()
        else:
            await session.emergency_evacuate()

        timeout = session.config.evac_duration_ms / 1000.0 + 2.0
        await wait_for_phase(session, {GamePhase.RESULT}, timeout)

        print("\nFinal Status:")
        print_snapshot(session)

        logger.info("demo.complete")

    except Exception as e:
        logger.error("demo.failed", error=str(e), exc_info=True)
        raise
    finally:
        await session.shutdown()


async def interactive_mode(args):
    """Run an interactive REPL over the session actions."""
    configure_logging(args.log_level)

    session = build_session(args)
    await session.initialize()
    session.add_feedback_listener(print_feedback)

    print("\n" + "=" * 60)
    print("fieldglow interactive session")
    print("=" * 60)
    print("\nCommands:")
    print("  start [lat lon] - Start the session")
    print("  move <m>        - Walk along the heading")
    print("  turn <deg>      - Rotate the heading")
    print("  capture         - Begin capturing the targeted node")
    print("  release         - Release the capture")
    print("  evac            - Confirm evacuation")
    print("  emergency       - Emergency evacuation")
    print("  continue        - Keep exploring instead of evacuating")
    print("  outdoor | home  - Toggle manual overrides")
    print("  debug           - Toggle debug mode")
    print("  nearby <m>      - List nodes within radius")
    print("  status          - Show session snapshot")
    print("  reset           - Reset the session")
    print("  quit            - Exit")
    print()

    simple_commands = {
        "capture": session.begin_capture,
        "release": session.end_capture,
        "evac": session.evacuate,
        "emergency": session.emergency_evacuate,
        "continue": session.continue_exploring,
        "outdoor": session.toggle_manual_outdoor,
        "home": session.toggle_manual_home,
        "debug": session.toggle_debug,
        "reset": session.reset,
    }

    try:
        while True:
            try:
                cmd = (await asyncio.to_thread(input, "> ")).strip().lower()

                if not cmd:
                    continue

                parts = cmd.split()
                command = parts[0]

                if command == "quit":
                    break
                elif command == "start":
                    position = None
                    if len(parts) >= 3:
                        position = Coordinate(latitude=float(parts[1]), longitude=float(parts[2]))
                    await session.start(position)
                elif command in ("move", "turn"):
                    if len(parts) < 2:
                        print(f"Usage: {command} <number>")
                        continue
                    value = float(parts[1])
                    if command == "move":
                        await session.simulate_move(value)
                    else:
                        await session.simulate_turn(value)
                elif command == "nearby":
                    radius = float(parts[1]) if len(parts) > 1 else 50.0
                    for node_id, dist in session.query_nodes_in_radius(radius):
                        print(f"  {node_id}: {dist:.1f} m")
                elif command == "status":
                    print_snapshot(session)
                elif command in simple_commands:
                    await simple_commands[command]()
                else:
                    print(f"Unknown command: {command}")
                    continue

                print(f"  -> {session.state.phase.value}")

            except KeyboardInterrupt:
                print("\nUse 'quit' to exit")
            except ValueError:
                print("Invalid number")
            except EOFError:
                break

    finally:
        await session.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a fieldglow session from the terminal")
    parser.add_argument("mode", nargs="?", choices=["demo", "interactive"], default="demo")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible sessions")
    parser.add_argument("--lat", type=float, default=37.7749, help="Start latitude")
    parser.add_argument("--lon", type=float, default=-122.4194, help="Start longitude")
    parser.add_argument("--captures", type=int, default=2, help="Nodes to capture in the demo")
    parser.add_argument("--fake-sensors", action="store_true", help="Synthetic GPS and walking")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()

    if args.mode == "interactive":
        asyncio.run(interactive_mode(args))
    else:
        asyncio.run(run_demo(args))


if __name__ == "__main__":
    main()
