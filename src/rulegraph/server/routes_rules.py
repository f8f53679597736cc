"""Rules routes: catalog, rule detail, task routing, suggestions, validation."""

from __future__ import annotations

from pathlib import Path

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from rulegraph.rules.models import Rule
from rulegraph.rules.router import UNDECLARED_READ_ORDER
from rulegraph.rules.service import RulesService, RulesServiceError
from rulegraph.rules.store import ManifestError

_METADATA_FIELDS = {
    "id",
    "title",
    "partition",
    "priority",
    "version",
    "description",
    "dependencies",
    "cross_references",
    "triggers",
}


def _ready_service(request: Request) -> RulesService | None:
    service: RulesService = request.app.state.rules_service
    return service if service.is_ready() else None


def _not_ready() -> JSONResponse:
    return JSONResponse({"error": "Rules service not initialized"}, status_code=503)


def _metadata(rule: Rule) -> dict:
    return rule.model_dump(mode="json", by_alias=True, include=_METADATA_FIELDS)


async def list_rules(request: Request) -> JSONResponse:
    """GET /api/rules — catalog grouped by partition in read order."""
    service = _ready_service(request)
    if service is None:
        return _not_ready()

    rules = service.get_all_rules()
    grouped: dict[str, list[Rule]] = {}
    for rule in rules:
        grouped.setdefault(rule.partition, []).append(rule)

    partitions = []
    for partition_id, members in grouped.items():
        config = service.get_partition_config(partition_id)
        partitions.append(
            {
                "id": partition_id,
                "description": config.description if config else "",
                "readOrder": config.read_order if config else UNDECLARED_READ_ORDER,
                "rules": [_metadata(r) for r in sorted(members, key=lambda r: r.id)],
            }
        )
    partitions.sort(key=lambda p: (p["readOrder"], p["id"]))

    return JSONResponse(
        {
            "totalRules": len(rules),
            "partitions": partitions,
            "primaryDirectiveId": service.get_primary_directive().id,
        }
    )


async def get_rule(request: Request) -> JSONResponse:
    """GET /api/rules/{rule_id} — rule metadata plus its file content."""
    service = _ready_service(request)
    if service is None:
        return _not_ready()

    rule_id = request.path_params["rule_id"]
    rule = service.get_rule(rule_id)
    if rule is None:
        return JSONResponse({"error": f"Rule not found: {rule_id}"}, status_code=404)

    root: Path = request.app.state.rules_root
    file_path = root / rule.path
    if not file_path.is_file():
        return JSONResponse({"error": f"Rule file not found: {rule.path}"}, status_code=404)

    data = _metadata(rule)
    data["content"] = file_path.read_text(encoding="utf-8")
    return JSONResponse(data)


async def route(request: Request) -> JSONResponse:
    """POST /api/rules/route — route a free-text task description."""
    service = _ready_service(request)
    if service is None:
        return _not_ready()

    try:
        body = await request.json()
        task = body["task"]
    except (ValueError, KeyError, TypeError):
        return JSONResponse({"error": "Body must be JSON with a 'task' string"}, status_code=422)
    if not isinstance(task, str):
        return JSONResponse({"error": "Body must be JSON with a 'task' string"}, status_code=422)

    result = service.route_task(task)
    return JSONResponse(result.model_dump(mode="json", by_alias=True))


async def suggest(request: Request) -> JSONResponse:
    """POST /api/rules/suggest — rules whose triggers overlap the keywords."""
    service = _ready_service(request)
    if service is None:
        return _not_ready()

    try:
        body = await request.json()
        keywords = body["keywords"]
    except (ValueError, KeyError, TypeError):
        return JSONResponse({"error": "Body must be JSON with a 'keywords' list"}, status_code=422)
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        return JSONResponse({"error": "Body must be JSON with a 'keywords' list"}, status_code=422)

    rules = service.suggest_rules(keywords)
    return JSONResponse({"rules": [_metadata(r) for r in rules], "count": len(rules)})


async def validation(request: Request) -> JSONResponse:
    """GET /api/rules/validation — last validation result and routing coverage."""
    service = _ready_service(request)
    if service is None:
        return _not_ready()

    result = service.validation_result()
    coverage = service.get_routing_coverage()
    return JSONResponse(
        {
            "validation": result.model_dump(mode="json", by_alias=True) if result else None,
            "coverage": coverage.model_dump(mode="json", by_alias=True),
        }
    )


async def reload(request: Request) -> JSONResponse:
    """POST /api/rules/reload — re-read the manifest from its source."""
    service: RulesService = request.app.state.rules_service
    try:
        result = service.reload()
    except (ManifestError, RulesServiceError) as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    return JSONResponse(
        {
            "valid": result.valid,
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
            "total_rules": result.stats.total_rules,
        }
    )


routes = [
    Route("/api/rules", list_rules),
    Route("/api/rules/route", route, methods=["POST"]),
    Route("/api/rules/suggest", suggest, methods=["POST"]),
    Route("/api/rules/validation", validation),
    Route("/api/rules/reload", reload, methods=["POST"]),
    Route("/api/rules/{rule_id}", get_rule),
]
