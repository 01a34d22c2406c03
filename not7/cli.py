"""
Command-line interface for not7.

Usage:
    not7 validate agent.json
    not7 run agent.json --input "some text" --timeout 300
    not7 run agent.json --async
    not7 list
    not7 status <execution-id>
    not7 result <execution-id>
    not7 trace <execution-id> --full
    not7 delete <execution-id>
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from not7.config import Not7Config
from not7.errors import ExecutionCancelledError, Not7Error
from not7.graph.spec import END, START, AgentSpec, load_spec
from not7.observability import configure_logging
from not7.runtime.execution_manager import ExecutionManager, ExecutionOptions
from not7.schemas.execution import Execution
from not7.storage.execution_store import ExecutionStore
from not7.tools.types import format_tool_output

RULE = "─" * 61
DOUBLE_RULE = "═" * 63
THOUGHT_PREVIEW_CHARS = 500
RESULT_PREVIEW_CHARS = 300


def _load_config(args: argparse.Namespace) -> Not7Config:
    config = Not7Config.load(Path(args.config) if args.config else None)
    if args.executions_dir:
        config.executions_dir = Path(args.executions_dir)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)
    return config


def _create_manager(args: argparse.Namespace) -> ExecutionManager:
    config = _load_config(args)
    return ExecutionManager(ExecutionStore(config.executions_dir), config)


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _print_result(execution: Execution) -> None:
    result = execution.result
    if result is None:
        print(f"\nStatus: {execution.status}")
        return

    if result.error:
        print(f"\n❌ {execution.status.capitalize()}: {result.error}")
    else:
        print("\n✅ Completed")
    print(f"💰 Cost: ${result.total_cost:.4f}")
    print(f"⏱️  Time: {result.duration_ms / 1000:.1f}s")

    if result.output:
        print("\n📄 Output:")
        print(RULE)
        print(result.output)
        print(RULE)


def _indent(text: str, prefix: str) -> str:
    return text.replace("\n", "\n" + prefix)


def _print_trace(execution: Execution, show_full: bool) -> None:
    print("\n╔══════════════════════════════════════════════════════════════╗")
    print("║  ReAct Execution Trace                                       ║")
    print("╚══════════════════════════════════════════════════════════════╝\n")

    result = execution.result
    metadata = result.metadata if result else None
    print(f"🎯 Goal: {execution.spec.goal}")
    print(f"📊 Status: {execution.status}")
    if result is None or metadata is None:
        print("\nNo node results recorded.")
        return
    print(f"⏱️  Total Time: {metadata.execution_time_ms}ms")
    print(f"💰 Total Cost: ${result.total_cost:.4f}\n")

    for node_result in metadata.node_results:
        trace = node_result.react_trace
        if trace is None:
            continue

        print(DOUBLE_RULE)
        print(f"Node: {node_result.node_id}")
        print(
            f"Iterations: {trace.iterations} | Time: {trace.total_thinking_time_ms}ms "
            f"| Cost: ${trace.iterations_cost:.4f}"
        )
        print(DOUBLE_RULE + "\n")

        for step in trace.thinking_steps:
            print(f"┌─ Iteration {step.iteration} " + "─" * 45 + "┐")
            print(f"│ Duration: {step.duration_ms}ms | Cost: ${step.cost:.4f}")
            print("└" + "─" * 62 + "┘\n")

            thought = step.thought
            if not show_full and len(thought) > THOUGHT_PREVIEW_CHARS:
                thought = thought[:THOUGHT_PREVIEW_CHARS] + "\n... [truncated, use --full to see all]"
            print("💭 Thought:")
            print(f"   {_indent(thought, '   ')}\n")

            for call in step.tool_calls:
                print(f"🔧 Tool Call: {call.tool_name}")
                if call.arguments:
                    print("   Arguments:")
                    for key, value in call.arguments.items():
                        print(f"     • {key}: {value}")
                print(f"   Duration: {call.duration_ms}ms")
                if call.error:
                    print(f"   ❌ Error: {call.error}")
                else:
                    text = format_tool_output(call.result)
                    if not show_full and len(text) > RESULT_PREVIEW_CHARS:
                        text = text[:RESULT_PREVIEW_CHARS] + "... [truncated]"
                    print("   ✅ Result:")
                    print(f"      {_indent(text, '      ')}")
                print()
            print()

        if node_result.output is not None:
            print(DOUBLE_RULE)
            print("🎬 Final Output:")
            print(DOUBLE_RULE + "\n")
            print(f"{node_result.output}\n")


def _plan(spec: AgentSpec) -> list[str]:
    """Node ids in the order a run would visit them, each at most once."""
    order: list[str] = []

    def walk(targets: list[str]) -> bool:
        for target in targets:
            if target == END:
                return True
            if target in order:
                continue
            order.append(target)
            if walk(spec.targets_from(target)):
                return True
        return False

    walk(spec.targets_from(START))
    return order


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        spec = load_spec(args.spec)
    except Not7Error as e:
        return _fail(str(e))

    print(f"✓ {args.spec} is valid")
    print(f"  Goal: {spec.goal}")
    print(f"  Nodes: {len(spec.nodes)}, routes: {len(spec.routes)}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        spec = load_spec(args.spec)
    except Not7Error as e:
        return _fail(str(e))

    if args.dry_run:
        print(f"📖 Dry run: {args.spec}")
        for step, node_id in enumerate(_plan(spec), start=1):
            node = spec.get_node(node_id)
            print(f"  {step}. {node.display_name} ({node.type})")
        return 0

    manager = _create_manager(args)
    options = ExecutionOptions(
        async_=args.async_,
        timeout=args.timeout,
        input_data=args.input or "",
    )
    print(f"📖 Executing: {args.spec}")

    async def _run() -> Execution:
        execution = await manager.execute(spec, options)
        if not options.async_:
            return execution

        print(f"\n📋 Execution ID: {execution.id}")
        print(f"Check status: not7 status {execution.id}\n")
        finished = await manager.wait_for_completion(execution.id)
        return finished or execution

    try:
        execution = asyncio.run(_run())
    except ExecutionCancelledError as e:
        return _fail(str(e))
    except Not7Error as e:
        return _fail(str(e))
    except KeyboardInterrupt:
        return _fail("interrupted")

    print(f"📋 Execution ID: {execution.id}")
    _print_result(execution)
    return 0 if execution.status == "completed" else 1


def cmd_list(args: argparse.Namespace) -> int:
    manager = _create_manager(args)
    infos = asyncio.run(manager.list_executions())

    if args.json:
        print(json.dumps([info.model_dump(mode="json") for info in infos], indent=2))
        return 0

    if not infos:
        print("No executions found.")
        return 0

    print(f"{'ID':<40} {'STATUS':<10} {'DURATION':>10} {'COST':>9}  GOAL")
    for info in infos:
        print(
            f"{info.id:<40} {info.status:<10} {info.duration_ms:>8}ms "
            f"${info.total_cost:>8.4f}  {info.goal}"
        )
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    manager = _create_manager(args)
    try:
        execution = asyncio.run(manager.get_execution(args.execution_id))
    except Not7Error as e:
        return _fail(str(e))

    print(f"Execution: {execution.id}")
    print(f"Status: {execution.status}")
    print(f"Goal: {execution.spec.goal}")
    if execution.result:
        print(f"Duration: {execution.result.duration_ms}ms")
        print(f"Cost: ${execution.result.total_cost:.4f}")
        if execution.result.error:
            print(f"Error: {execution.result.error}")
    return 0


def cmd_result(args: argparse.Namespace) -> int:
    manager = _create_manager(args)
    try:
        execution = asyncio.run(manager.get_execution(args.execution_id))
    except Not7Error as e:
        return _fail(str(e))

    _print_result(execution)
    return 0


def cmd_trace(args: argparse.Namespace) -> int:
    manager = _create_manager(args)
    try:
        execution = asyncio.run(manager.get_execution(args.execution_id))
    except Not7Error as e:
        return _fail(str(e))

    _print_trace(execution, args.full)
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    manager = _create_manager(args)
    try:
        asyncio.run(manager.delete_execution(args.execution_id))
    except Not7Error as e:
        return _fail(str(e))

    print(f"Deleted execution {args.execution_id}")
    return 0


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    """Register the not7 subcommands."""
    validate_parser = subparsers.add_parser("validate", help="Validate an agent spec file")
    validate_parser.add_argument("spec", help="Path to agent JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    run_parser = subparsers.add_parser("run", help="Execute an agent")
    run_parser.add_argument("spec", help="Path to agent JSON file")
    run_parser.add_argument("--input", "-i", help="Initial input passed to the first node")
    run_parser.add_argument(
        "--async",
        dest="async_",
        action="store_true",
        help="Submit in the background and print the execution id right away",
    )
    run_parser.add_argument("--timeout", type=float, help="Deadline in seconds")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and print the node order without calling any backend",
    )
    run_parser.set_defaults(func=cmd_run)

    list_parser = subparsers.add_parser("list", help="List stored executions")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.set_defaults(func=cmd_list)

    status_parser = subparsers.add_parser("status", help="Show an execution's status")
    status_parser.add_argument("execution_id")
    status_parser.set_defaults(func=cmd_status)

    result_parser = subparsers.add_parser("result", help="Show an execution's output")
    result_parser.add_argument("execution_id")
    result_parser.set_defaults(func=cmd_result)

    trace_parser = subparsers.add_parser("trace", help="Show the ReAct trace of an execution")
    trace_parser.add_argument("execution_id")
    trace_parser.add_argument(
        "--full", "-F", action="store_true", help="Show full thoughts (not truncated)"
    )
    trace_parser.set_defaults(func=cmd_trace)

    delete_parser = subparsers.add_parser("delete", help="Delete a stored execution")
    delete_parser.add_argument("execution_id")
    delete_parser.set_defaults(func=cmd_delete)


def main():
    parser = argparse.ArgumentParser(
        prog="not7",
        description="not7 - run declarative agent specs",
    )
    parser.add_argument("--config", help="Configuration file (default: ~/.not7/configuration.json)")
    parser.add_argument("--executions-dir", help="Where executions are stored")
    parser.add_argument("--log-dir", help="Where per-execution logs are written")
    parser.add_argument("--log-level", default="WARNING", help="Console log level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args()
    configure_logging(args.log_level)

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
