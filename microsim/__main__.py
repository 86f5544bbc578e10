"""Run a built-in scenario with random arrivals.

Start with::

    python -m microsim                                   # four-way stop
    python -m microsim --scenario signalized-v0 --ticks 3000
    python -m microsim --cars 40 --checkpoint state.json --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging

from .benchmarks.driver import ScriptedDriver, random_arrivals
from .benchmarks.scenarios import get_scenario, list_scenarios
from .config import PolicyConfig
from .core.manager import IntersectionManager
from .io.json_io import save_checkpoint
from .logging_setup import setup_logging

logger = logging.getLogger("microsim")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="microsim intersection admission demo")
    parser.add_argument("--scenario", default="four-way-stop-v0",
                        choices=list_scenarios())
    parser.add_argument("--ticks", type=int, default=1200,
                        help="Ticks to simulate")
    parser.add_argument("--cars", type=int, default=20,
                        help="Cars arriving during the first half of the run")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--checkpoint", default=None,
                        help="Write the final admission state to this JSON file")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args(argv)

    setup_logging(getattr(logging, args.log_level), args.log_file)

    net, control = get_scenario(args.scenario)()
    errors = net.validate() + control.validate(net)
    if errors:
        for e in errors:
            logger.error("Invalid scenario: %s", e)
        return 1

    for iid in sorted(net.intersections):
        logger.info("Intersection %s: %d turns, %d conflicting pairs",
                    iid, len(net.intersections[iid].turns),
                    len(net.conflicting_pairs(iid)))

    manager = IntersectionManager(net, control, PolicyConfig.from_env())
    arrivals = random_arrivals(net, args.cars, args.ticks // 2, seed=args.seed)
    driver = ScriptedDriver(manager, arrivals)
    stats = driver.run(args.ticks)

    summary = stats.summary(still_waiting=len(driver.waiting))
    print(f"\n=== {args.scenario}: {args.ticks} ticks, {args.cars} cars ===")
    for key, value in summary.items():
        print(f"  {key:<16s} {value:g}")

    if args.checkpoint:
        save_checkpoint(args.checkpoint, manager, driver.tick)
        logger.info("Checkpoint written to %s", args.checkpoint)

    return 1 if stats.violations else 0


if __name__ == "__main__":
    raise SystemExit(main())
