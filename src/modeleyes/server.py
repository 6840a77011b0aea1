"""MCP Server exposing the ModelEyes state synchronization engine."""

import argparse
import logging
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from modeleyes.components.state_sync_engine import ContextOptions, StateSyncEngine
from modeleyes.domains.context_compaction import BudgetUnit
from modeleyes.domains.shared.kernel import (
    BudgetUnitLiteral,
    CompactionPresetLiteral,
    ModelEyesError,
    StateValidationError,
    VersionMismatchError,
)
from modeleyes.domains.ui_state import DifferentialUpdate, UIState
from modeleyes.models.config_models import EngineConfig

logger = logging.getLogger(__name__)

_SERVER_INSTRUCTIONS = (
    "Keeps a bounded, versioned view of a user interface. Seed it with "
    "process_initial_state, keep it current with process_state_update, and "
    "call prepare_context to get a snapshot that fits a token budget. On a "
    "VersionMismatchError, send a full snapshot again."
)


def _error_response(error: Exception, **extra: Any) -> Dict[str, Any]:
    """Build the failure payload shared by every tool."""
    response: Dict[str, Any] = {
        "success": False,
        "error": str(error),
        "error_type": type(error).__name__,
    }
    if isinstance(error, StateValidationError) and error.problems:
        response["problems"] = list(error.problems)
    if isinstance(error, VersionMismatchError):
        response["expected_version"] = error.expected_version
        response["current_version"] = error.actual_version
        response["recovery"] = "Send a full snapshot with process_initial_state"
    response.update(extra)
    return response


def create_server(engine: Optional[StateSyncEngine] = None) -> FastMCP:
    """Create a FastMCP server bound to ``engine``.

    Args:
        engine: Engine to serve; a default-configured one when omitted

    Returns:
        Configured FastMCP server instance.
    """
    engine = engine or StateSyncEngine()
    mcp = FastMCP("ModelEyes MCP Server", instructions=_SERVER_INSTRUCTIONS)

    @mcp.tool(
        name="process_initial_state",
        description="Seed the engine with a full UI snapshot.",
    )
    async def process_initial_state(state: Dict[str, Any]) -> Dict[str, Any]:
        """Parse, validate and cache a full snapshot."""
        try:
            snapshot = engine.process_initial_state(UIState.from_dict(state))
        except ModelEyesError as e:
            logger.warning(f"Rejected initial state: {e}")
            return _error_response(e)
        return {
            "success": True,
            "version": snapshot.version,
            "element_count": snapshot.element_count,
            "interactable_count": snapshot.interactable_count,
        }

    @mcp.tool(
        name="process_state_update",
        description=(
            "Apply a differential update (baseVersion, version, added, modified, "
            "removed, focus, hover) to the current UI snapshot."
        ),
    )
    async def process_state_update(update: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a patch to the current snapshot."""
        try:
            patch = DifferentialUpdate.from_dict(update)
            snapshot = engine.process_state_update(patch)
        except ModelEyesError as e:
            return _error_response(e)
        return {
            "success": True,
            "base_version": patch.base_version,
            "version": snapshot.version,
            "element_count": snapshot.element_count,
            "changes": patch.change_count,
        }

    @mcp.tool(
        name="prepare_context",
        description=(
            "Return the current UI snapshot reduced to fit a budget, keeping the "
            "most relevant elements (interactable, labelled, near the root)."
        ),
    )
    async def prepare_context(
        budget: Optional[int] = None,
        unit: Optional[BudgetUnitLiteral] = None,
        preset: Optional[CompactionPresetLiteral] = None,
        include_invisible: Optional[bool] = None,
        include_full_details: Optional[bool] = None,
        max_elements: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Compact the current snapshot."""
        options = ContextOptions(
            include_full_details=include_full_details,
            include_invisible=include_invisible,
            unit=BudgetUnit.from_string(unit) if unit else None,
            max_elements=max_elements,
            preset=preset,
        )
        try:
            context = engine.prepare_context(budget=budget, options=options)
        except (ModelEyesError, ValueError) as e:
            return _error_response(e)
        return {"success": True, **context.to_dict()}

    @mcp.tool(
        name="get_state_by_version",
        description="Return a cached UI snapshot by version, if it is still resident.",
    )
    async def get_state_by_version(version: str) -> Dict[str, Any]:
        snapshot = engine.get_state_by_version(version)
        if snapshot is None:
            return {"success": True, "found": False, "version": version}
        return {"success": True, "found": True, "state": snapshot.to_dict()}

    @mcp.tool(
        name="get_most_recent_state",
        description="Return the cached UI snapshot with the latest timestamp.",
    )
    async def get_most_recent_state() -> Dict[str, Any]:
        snapshot = engine.get_most_recent_state()
        if snapshot is None:
            return {"success": True, "found": False}
        return {"success": True, "found": True, "state": snapshot.to_dict()}

    @mcp.tool(
        name="get_element",
        description="Return the last known properties of a UI element by id.",
    )
    async def get_element(element_id: str) -> Dict[str, Any]:
        element = engine.get_element(element_id)
        if element is None:
            return {"success": True, "found": False, "element_id": element_id}
        return {"success": True, "found": True, "element": element.to_dict()}

    @mcp.tool(
        name="compute_diff",
        description="Compute the differential update between two full UI snapshots.",
    )
    async def compute_diff(old_state: Dict[str, Any], new_state: Dict[str, Any]) -> Dict[str, Any]:
        """Diff two snapshots without touching the engine's caches."""
        try:
            update = engine.compute_diff(UIState.from_dict(old_state), UIState.from_dict(new_state))
        except ModelEyesError as e:
            return _error_response(e)
        return {
            "success": True,
            "update": update.to_dict(),
            "is_empty": update.is_empty,
            "changes": update.change_count,
        }

    @mcp.tool(
        name="get_token_usage_stats",
        description="Return average, max and count of recent prepare_context costs.",
    )
    async def get_token_usage_stats() -> Dict[str, Any]:
        return {"success": True, **engine.get_token_usage_stats()}

    return mcp


# Default server for `fastmcp run` and in-process clients
mcp = create_server()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ModelEyes MCP server entry point."
    )
    parser.add_argument(
        "--transport",
        dest="transport",
        choices=["stdio", "http", "sse"],
        help="Transport to use for the MCP server (default: stdio).",
    )
    parser.add_argument(
        "--host",
        dest="host",
        help="Host/interface for HTTP transport (default 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        dest="port",
        type=int,
        help="Port for HTTP transport (default 8000).",
    )
    parser.add_argument(
        "--path",
        dest="path",
        help="Path for HTTP/streamable endpoints (default '/').",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        help="Log level for the MCP server (e.g., INFO, DEBUG).",
    )
    return parser


def main(argv: List[str] | None = None) -> None:
    """Start the ModelEyes MCP server."""

    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    config = EngineConfig.from_env()
    if args.log_level:
        config.update(LOG_LEVEL=args.log_level.upper())

    errors = config.validate()
    if errors:
        parser.error("; ".join(errors))

    logging.basicConfig(level=config.LOG_LEVEL.upper())

    engine = StateSyncEngine(config)
    server = create_server(engine)
    logger.info(
        f"Starting ModelEyes (state cache {config.STATE_CACHE_SIZE}, "
        f"element cache {config.ELEMENT_CACHE_SIZE}, budget {config.MAX_TOKENS} "
        f"{config.BUDGET_UNIT})"
    )

    try:
        run_kwargs = {}

        # Default to stdio when no transport is provided
        transport = args.transport or "stdio"
        run_kwargs["transport"] = transport

        if args.log_level:
            run_kwargs["log_level"] = args.log_level

        # Only pass host/port/path when using HTTP/SSE transports
        if transport != "stdio":
            if args.host:
                run_kwargs["host"] = args.host
            if args.port:
                run_kwargs["port"] = args.port
            if args.path:
                run_kwargs["path"] = args.path

        server.run(**run_kwargs)
    except KeyboardInterrupt:
        logger.info("ModelEyes interrupted by user")
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
