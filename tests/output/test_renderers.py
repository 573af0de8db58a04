"""Tests for operation-specific Rich renderers."""

from archnav.output.renderers import render_quiet, render_result
from archnav.services.result import ServiceError, ServiceResult

# ── Helpers ───────────────────────────────────────────────────────────


def _ok(op: str, meta: dict | None = None, **data: object) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data=dict(data), meta=meta)


def _err(op: str, code: str, message: str, **detail: object) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=code, message=message, detail=dict(detail)),
    )


def _query(**data: object) -> ServiceResult:
    base: dict = {
        "workspace_id": "acme",
        "query_type": "IMPACT_ANALYSIS",
        "level": "RELATION",
        "nodes": [],
        "edges": [],
        "paths": None,
        "truncated": False,
        "truncation_reason": None,
        "summary": {},
    }
    base.update(data)
    return ServiceResult(ok=True, op="query", data=base, meta={"generation_version": None})


# ── Error rendering ──────────────────────────────────────────────────


class TestErrorRenderer:
    def test_basic_error(self) -> None:
        output = render_result(_err("query", "NOT_FOUND", "No object 'x'"))
        assert "ERROR" in output
        assert "NOT_FOUND" in output
        assert "No object 'x'" in output

    def test_field_reasons_always_shown(self) -> None:
        result = _err(
            "query",
            "VALIDATION_ERROR",
            "Missing query parameters",
            errors=[{"field": "params.to_object_id", "reason": "required"}],
        )
        assert "params.to_object_id: required" in render_result(result)

    def test_verbose_shows_detail(self) -> None:
        result = _err("rebuild", "REBUILD_FAILED", "boom", stage="project")
        assert "stage" not in render_result(result)
        output = render_result(result, verbose=True)
        assert "detail" in output
        assert "project" in output

    def test_no_error_object(self) -> None:
        assert "Unknown error" in render_result(ServiceResult(ok=False, op="test"))


# ── Rollup and inference ─────────────────────────────────────────────


class TestRollupRenderers:
    def test_rebuild(self) -> None:
        output = render_result(
            _ok(
                "rebuild",
                workspace_id="acme",
                generation_version=3,
                previous_version=2,
                relation_count=6,
                edge_counts={"SERVICE_TO_SERVICE": 1, "DOMAIN_TO_DOMAIN": 0},
            )
        )
        assert "OK" in output
        assert "generation_version: 3" in " ".join(output.split())
        assert "SERVICE_TO_SERVICE: 1" in output

    def test_generations_table(self) -> None:
        output = render_result(
            _ok(
                "generations",
                active_version=2,
                items=[
                    {"generation_version": 2, "status": "ACTIVE", "created": "t2"},
                    {"generation_version": 1, "status": "ARCHIVED", "created": "t1"},
                ],
            )
        )
        assert "ACTIVE" in output
        assert "ARCHIVED" in output
        assert "active: 2" in output

    def test_verbose_telemetry_tree(self) -> None:
        meta = {
            "telemetry": {
                "name": "RollupService.rebuild",
                "duration_ms": 12.5,
                "children": [{"name": "project", "duration_ms": 3.0, "annotations": {"edges": 4}}],
            }
        }
        output = render_result(_ok("prune", meta=meta, deleted_count=1), verbose=True)
        assert "RollupService.rebuild" in output
        assert "edges=4" in output


class TestInferenceRenderers:
    def test_seeded_lists_candidates(self) -> None:
        output = render_result(
            _ok(
                "infer_seeded",
                run_id="run-1",
                seed_count=1,
                scanned_count=3,
                candidate_count=1,
                items=[
                    {
                        "id": "cand-1",
                        "object_id": "svc-orders",
                        "primary_domain_id": "dom-orders",
                        "purity": 1.0,
                        "secondary_domain_ids": [],
                        "status": "PENDING",
                    }
                ],
            )
        )
        assert "cand-1" in output
        assert "dom-orders" in output
        assert "1.000" in output

    def test_discover_clusters(self) -> None:
        output = render_result(
            _ok(
                "discover",
                run_id="run-2",
                generation_version=1,
                cluster_count=1,
                graph_stats={"node_count": 5, "edge_count": 4},
                clusters=[
                    {
                        "cluster_id": "c0",
                        "domain_id": "dom-x",
                        "size": 3,
                        "members": ["s1", "s2", "s3"],
                    }
                ],
            )
        )
        assert "5 nodes, 4 edges" in output
        assert "1 clusters" in output
        assert "s3" in output


# ── Queries ──────────────────────────────────────────────────────────


class TestQueryRenderer:
    def test_node_table(self) -> None:
        output = render_result(
            _query(
                nodes=[{"id": "svc-b", "name": "b", "object_type": "service", "depth": 1}],
                edges=[{"subject_id": "svc-a", "object_id": "svc-b", "weight": 1.0}],
            )
        )
        assert "IMPACT_ANALYSIS" in output
        assert "svc-b" in output
        assert "1 nodes, 1 edges" in output

    def test_paths(self) -> None:
        output = render_result(
            _query(
                query_type="PATH_DISCOVERY",
                paths=[
                    {
                        "nodes": ["a", "b", "c"],
                        "hops": 2,
                        "score": 0.63,
                        "avg_confidence": 1.0,
                        "min_edge_weight": 1.0,
                        "key": "a>b>c",
                    }
                ],
            )
        )
        assert "a → b → c" in output
        assert "score=0.6300" in output

    def test_no_path(self) -> None:
        assert "No path found." in render_result(_query(paths=[]))

    def test_truncation_and_generation(self) -> None:
        result = ServiceResult(
            ok=True,
            op="query",
            data=_query(truncated=True, truncation_reason="max_hops").data,
            meta={"generation_version": 4},
        )
        output = render_result(result)
        assert "truncated: max_hops" in output
        assert "generation 4" in output


# ── Quiet mode ───────────────────────────────────────────────────────


class TestQuiet:
    def test_ids_only(self) -> None:
        result = _query(nodes=[{"id": "svc-b"}, {"id": "svc-c"}])
        assert render_quiet(result) == "svc-b\nsvc-c"

    def test_generation_version(self) -> None:
        assert render_quiet(_ok("rebuild", generation_version=7, edge_counts={})) == "7"

    def test_status_line(self) -> None:
        assert render_quiet(_ok("prune", deleted_count=0)) == "OK: prune"

    def test_error(self) -> None:
        assert render_quiet(_err("query", "NOT_FOUND", "gone")) == "ERROR: query: gone"
