import pytest

from conftest import make_mod
from modserver.api import InMemoryRegistry, ModRegistry
from modserver.exceptions import (
    CircularDependencyError,
    InvalidVersionError,
    ResolutionError,
)
from modserver.models import Dependency
from modserver.services.dependency_resolver import DependencyResolver


class FailingRegistry(ModRegistry):
    """Registry whose lookups always blow up."""

    async def get_mod(self, mod_id, version_expr):
        raise RuntimeError("registry offline")

    async def get_available_versions(self, mod_id):
        return []

    async def get_latest_version(self, mod_id):
        return None


def resolver_for(*mods, **kwargs):
    return DependencyResolver(InMemoryRegistry(mods), **kwargs)


@pytest.mark.asyncio
async def test_single_mod_without_dependencies():
    a = make_mod("a")
    result = await resolver_for(a).resolve([a])

    assert result.install_order == ["a"]
    assert result.resolved_mods[0].installed_by == ""
    assert not result.has_conflicts
    assert not result.has_missing_deps


@pytest.mark.asyncio
async def test_chain_installs_dependencies_first():
    a = make_mod("a", deps=["b"])
    b = make_mod("b", deps=["c"])
    c = make_mod("c")

    result = await resolver_for(a, b, c).resolve([a])

    assert result.install_order == ["c", "b", "a"]
    assert result.get("b").installed_by == "a"
    assert result.get("c").installed_by == "b"
    assert result.get("c").is_dependency


@pytest.mark.asyncio
async def test_diamond_resolves_shared_dependency_once():
    a = make_mod("a", deps=["b", "c"])
    b = make_mod("b", deps=["d"])
    c = make_mod("c", deps=["d"])
    d = make_mod("d")

    result = await resolver_for(a, b, c, d).resolve([a])

    assert result.install_order == ["d", "b", "c", "a"]
    assert len(result.resolved_mods) == 4
    assert not result.has_conflicts


@pytest.mark.asyncio
async def test_install_order_is_deterministic():
    a = make_mod("a", deps=["lib"])
    b = make_mod("b", deps=["lib"])
    lib = make_mod("lib")
    resolver = resolver_for(a, b, lib)

    first = await resolver.resolve([a, b])
    second = await resolver.resolve([a, b])

    assert first.install_order == second.install_order == ["lib", "a", "b"]


@pytest.mark.asyncio
async def test_dependency_version_is_best_match():
    a = make_mod("a", deps=[("lib", ">=1.0.0,<2.0.0")])
    registry_mods = [a] + [make_mod("lib", v) for v in ["0.9.0", "1.2.0", "1.8.0", "2.1.0"]]

    result = await resolver_for(*registry_mods).resolve([a])

    assert result.get("lib").mod_info.version == "1.8.0"


@pytest.mark.asyncio
async def test_missing_required_dependency_is_recorded():
    a = make_mod("a", deps=[("ghost", ">=1.0.0")])

    resolver = resolver_for(a)
    result = await resolver.resolve([a])

    assert result.install_order == ["a"]
    assert [dep.mod_id for dep in result.missing_deps] == ["ghost"]
    assert result.missing_deps[0].version_expr == ">=1.0.0"
    assert resolver.has_missing_deps()


@pytest.mark.asyncio
async def test_unsatisfiable_range_counts_as_missing():
    a = make_mod("a", deps=[("lib", ">=5.0.0")])
    lib = make_mod("lib", "1.0.0")

    result = await resolver_for(a, lib).resolve([a])

    assert result.has_missing_deps
    assert result.get("lib") is None


@pytest.mark.asyncio
async def test_registry_errors_count_as_missing():
    a = make_mod("a", deps=["b"])
    result = await DependencyResolver(FailingRegistry()).resolve([a])

    assert result.install_order == ["a"]
    assert [dep.mod_id for dep in result.missing_deps] == ["b"]


@pytest.mark.asyncio
async def test_optional_dependencies_skipped_by_default():
    a = make_mod("a", deps=[Dependency("extra", required=False), Dependency("gone", required=False)])
    extra = make_mod("extra")

    result = await resolver_for(a, extra).resolve([a])

    assert result.install_order == ["a"]
    assert not result.has_missing_deps


@pytest.mark.asyncio
async def test_optional_dependencies_included_on_request():
    a = make_mod("a", deps=[Dependency("extra", required=False), Dependency("gone", required=False)])
    extra = make_mod("extra")

    result = await resolver_for(a, extra, include_optional=True).resolve([a])

    assert result.install_order == ["extra", "a"]
    # a missing optional dependency is dropped silently
    assert not result.has_missing_deps


@pytest.mark.asyncio
async def test_version_conflict_keeps_first_resolution():
    a = make_mod("a", deps=[("lib", "1.0.0")])
    b = make_mod("b", deps=[("lib", "2.0.0")])
    lib1 = make_mod("lib", "1.0.0")
    lib2 = make_mod("lib", "2.0.0")

    resolver = resolver_for(a, b, lib1, lib2)
    result = await resolver.resolve([a, b])

    assert result.get("lib").mod_info.version == "1.0.0"
    assert resolver.has_conflicts()
    assert len(result.conflicts) == 1

    conflict = result.conflicts[0]
    assert conflict.mod_id == "lib"
    assert conflict.required_by == ["b", "a"]
    assert conflict.versions == ["2.0.0", "1.0.0"]
    assert conflict.version_exprs == ["2.0.0", "1.0.0"]


@pytest.mark.asyncio
async def test_conflict_accumulates_later_requesters():
    lib_versions = [make_mod("lib", v) for v in ["1.0.0", "2.0.0", "3.0.0"]]
    a = make_mod("a", deps=[("lib", "1.0.0")])
    b = make_mod("b", deps=[("lib", "2.0.0")])
    c = make_mod("c", deps=[("lib", "3.0.0")])

    result = await resolver_for(a, b, c, *lib_versions).resolve([a, b, c])

    conflict = result.conflicts[0]
    assert conflict.required_by == ["b", "a", "c"]
    assert conflict.versions == ["2.0.0", "1.0.0", "3.0.0"]


@pytest.mark.asyncio
async def test_top_level_duplicate_with_other_version_conflicts():
    old = make_mod("a", "1.0.0")
    new = make_mod("a", "1.1.0")

    result = await resolver_for(old, new).resolve([old, new])

    assert result.install_order == ["a"]
    conflict = result.conflicts[0]
    assert conflict.required_by == ["", ""]
    assert conflict.version_exprs == ["1.1.0", "1.0.0"]


@pytest.mark.asyncio
async def test_same_version_twice_is_not_a_conflict():
    a = make_mod("a", deps=["lib"])
    b = make_mod("b", deps=[("lib", "v1.0")])
    lib = make_mod("lib", "1.0.0")

    result = await resolver_for(a, b, lib).resolve([a, b])

    assert not result.has_conflicts


@pytest.mark.asyncio
async def test_unparseable_version_during_conflict_check_raises():
    weird = make_mod("weird", "build-42")

    with pytest.raises(InvalidVersionError):
        await resolver_for(weird).resolve([weird, weird])


@pytest.mark.asyncio
async def test_cycle_is_reported_per_branch():
    a = make_mod("a", deps=["b"])
    b = make_mod("b", deps=["a"])
    standalone = make_mod("standalone")

    resolver = resolver_for(a, b, standalone)
    result = await resolver.resolve([a, standalone])

    assert result.install_order == ["standalone"]
    assert len(result.errors) == 1
    error = result.errors[0]
    assert isinstance(error, ResolutionError)
    assert error.message.startswith("failed to resolve a:")
    assert resolver.get_resolution_errors() == result.errors


@pytest.mark.asyncio
async def test_self_dependency_is_a_cycle():
    a = make_mod("a", deps=["a"])
    result = await resolver_for(a).resolve([a])

    assert result.install_order == []
    assert len(result.errors) == 1


@pytest.mark.asyncio
async def test_completed_mods_survive_failed_branch():
    a = make_mod("a", deps=["lib", "b"])
    b = make_mod("b", deps=["a"])
    lib = make_mod("lib")

    result = await resolver_for(a, b, lib).resolve([a])

    assert result.install_order == ["lib"]
    assert result.get("lib").installed_by == "a"


@pytest.mark.asyncio
async def test_provides_alias_orders_provider_first():
    consumer = make_mod("consumer", deps=["fabric-api-base"])
    provider = make_mod("fabric-api", provides=["fabric-api-base"])

    result = await resolver_for(consumer, provider).resolve([consumer])

    assert result.install_order == ["fabric-api", "consumer"]


def test_fresh_resolver_reports_nothing():
    resolver = resolver_for()
    assert resolver.has_conflicts() is False
    assert resolver.has_missing_deps() is False
    assert resolver.get_resolution_errors() == []


@pytest.mark.asyncio
async def test_each_resolve_starts_fresh():
    a = make_mod("a", deps=["ghost"])
    b = make_mod("b")
    resolver = resolver_for(a, b)

    await resolver.resolve([a])
    assert resolver.has_missing_deps()

    result = await resolver.resolve([b])
    assert not resolver.has_missing_deps()
    assert result.install_order == ["b"]


@pytest.mark.asyncio
async def test_cycle_through_skipped_optional_edge_aborts_sort():
    a = make_mod("a", deps=[Dependency(mod_id="b", required=False)])
    b = make_mod("b", deps=["a"])

    with pytest.raises(CircularDependencyError) as exc_info:
        await resolver_for(a, b).resolve([a, b])

    assert exc_info.value.code == "E701"
    assert set(exc_info.value.path) == {"a", "b"}


def test_cycle_error_carries_path():
    error = CircularDependencyError("a", path=["a", "b", "a"])
    assert error.mod_id == "a"
    assert error.path == ["a", "b", "a"]
    assert "a -> b -> a" in error.message
