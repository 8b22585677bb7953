import argparse
import os
import traceback

from dotenv import load_dotenv

from .configs.full_config import build_demo_config, build_full_config
from .core.models import PipelineState
from .core.orchestrator import PipelineOrchestrator
from .core.validator import validate_pipeline_config


def print_report(state: PipelineState):
    """
    Helper to pretty-print the final pipeline results.
    """
    titles = {r.id: r.title or r.url or r.id for r in state.records}
    duplicates = state.duplicates

    print("\n" + "=" * 80)
    if duplicates is not None:
        print(
            f" FINAL REPORT | {len(state.records)} records | "
            f"{len(duplicates.groups)} duplicate groups | "
            f"{duplicates.potential_savings} removable"
        )
    else:
        print(f" FINAL REPORT | {len(state.records)} records")
    print("=" * 80 + "\n")

    if duplicates is not None and duplicates.groups:
        for group in duplicates.groups:
            print(f"[{group.reason.value}] {group.id} (Similarity: {group.similarity})")
            for member_id in group.member_ids:
                print(f"     • {member_id}: \"{titles.get(member_id, '?')[:80]}\"")
        print("-" * 60)
    else:
        print("No duplicates found.")

    for plan in state.merge_plans:
        print(f"   Merge {plan.group_id}: keep {plan.keep_id}, delete {', '.join(plan.delete_ids)}")

    if state.cleanup is not None:
        print(
            f"\n   Stale: {len(state.cleanup.stale_records)} | "
            f"Dead links: {len(state.cleanup.broken_links)} | "
            f"Cleanup potential: {state.cleanup.total_cleanup_potential}"
        )

    if state.graph is not None:
        print(f"\n   Graph: {len(state.graph.nodes)} nodes, {len(state.graph.edges)} edges")
        if state.orphans:
            print(f"   Orphans (untagged): {', '.join(state.orphans)}")
        if state.bridges:
            print(f"   Bridge tags: {', '.join(state.bridges)}")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Find duplicate records and lay out the knowledge graph.")
    parser.add_argument("records", nargs="?", help="JSON file with records (omit to run the demo set)")
    parser.add_argument("--width", type=float, default=1200)
    parser.add_argument("--height", type=float, default=800)
    parser.add_argument("--iterations", type=int, default=80)
    parser.add_argument("--out", default="final_output.json", help="Where to write the final state JSON")
    parser.add_argument("--debug", action="store_true", help="Write a debug log under the log directory")
    return parser.parse_args(argv)


def main(argv=None):
    load_dotenv()
    args = parse_args(argv)
    debug = args.debug or _env_flag("LINKHAVEN_DEBUG")

    print("Initializing Pipeline System...")
    if args.records:
        config = build_full_config(args.records, args.width, args.height, args.iterations, debug)
    else:
        config = build_demo_config(args.width, args.height, args.iterations, debug)

    # 1. Validate and boot the Orchestrator
    try:
        validate_pipeline_config(config)
        orchestrator = PipelineOrchestrator(config)
    except ValueError as e:
        print(f"Configuration Error: {e}")
        return 2

    # 2. Run the Pipeline
    try:
        final_state = orchestrator.run(PipelineState())
    except Exception as e:
        print(f"\nCRITICAL PIPELINE ERROR: {e}")
        traceback.print_exc()
        return 1

    # 3. Print the Pretty Report
    print_report(final_state)

    # 4. Save Full JSON for the rendering / merge collaborators
    with open(args.out, "w", encoding="utf-8") as f:
        f.write(final_state.model_dump_json(indent=2))
    print(f"\nFull structured data saved to '{args.out}'")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
