from hypothesis import given
from hypothesis import strategies as st

from repo_updater.git_wrapper import Divergence, Outdated, ProbeFailed
from repo_updater.sync import SyncAction, decide
from repo_updater.versions import SemVer, needs_rebuild

parts = st.integers(min_value=0, max_value=10_000)
versions = st.builds(SemVer, parts, parts, parts)
counts = st.integers(min_value=0, max_value=500)
probes = st.one_of(st.builds(Outdated, st.booleans()), st.builds(ProbeFailed, st.text()))


@given(a=versions, b=versions)
def test_semver_order_matches_tuple_order(a: SemVer, b: SemVer) -> None:
    """
    Property: Version ordering is exactly the lexicographic ordering of
    (major, minor, patch).
    """
    ta = (a.major, a.minor, a.patch)
    tb = (b.major, b.minor, b.patch)
    assert (a < b) == (ta < tb)
    assert (a == b) == (ta == tb)


@given(version=versions)
def test_semver_string_round_trip(version: SemVer) -> None:
    assert SemVer.parse(str(version)) == version


@given(release=versions, compiled=st.one_of(st.none(), versions))
def test_rebuild_only_when_behind(release: SemVer, compiled: SemVer | None) -> None:
    """
    Property: A rebuild happens iff nothing was built or the build is strictly
    older; an equal or newer build never triggers one.
    """
    if compiled is None:
        assert needs_rebuild(release, compiled)
    else:
        assert needs_rebuild(release, compiled) == (compiled < release)


@given(probe=probes, ahead=counts, behind=counts, safe=st.booleans())
def test_dirty_safe_always_aborts(
    probe: Outdated | ProbeFailed, ahead: int, behind: int, safe: bool
) -> None:
    """Property: In safe mode a dirty tree aborts before divergence matters."""
    action = decide(probe, Divergence(ahead, behind), dirty=True, safe=True)
    assert action is SyncAction.ABORT_DIRTY


@given(probe=probes, ahead=st.integers(min_value=1, max_value=500), behind=counts)
def test_safe_mode_never_resets_local_commits(
    probe: Outdated | ProbeFailed, ahead: int, behind: int
) -> None:
    """Property: With local commits and safe mode, history is never reset."""
    action = decide(probe, Divergence(ahead, behind), dirty=False, safe=True)
    assert action is SyncAction.ABORT_DIVERGED


@given(
    probe=probes,
    ahead=counts,
    behind=counts,
    dirty=st.booleans(),
)
def test_unsafe_mode_converges_to_upstream(
    probe: Outdated | ProbeFailed, ahead: int, behind: int, dirty: bool
) -> None:
    """
    Property: Outside safe mode any difference from upstream resets, and no
    difference leaves the repository alone.
    """
    action = decide(probe, Divergence(ahead, behind), dirty=dirty, safe=False)
    if probe.is_outdated or ahead or behind:
        assert action is SyncAction.RESET_TO_UPSTREAM
    else:
        assert action is SyncAction.UP_TO_DATE


@given(behind=st.integers(min_value=1, max_value=500), safe=st.booleans())
def test_clean_behind_branch_resets(behind: int, safe: bool) -> None:
    action = decide(Outdated(True), Divergence(0, behind), dirty=False, safe=safe)
    assert action is SyncAction.RESET_TO_UPSTREAM
