import pytest

from pyffbuild.projects.ffmpeg import BuildFFmpeg
from pyffbuild.projects.project import Project
from pyffbuild.targets import Target, TargetManager, UnknownTargetError, target_manager


def _sort_targets(targets: "list[str]") -> "list[str]":
    return [t.name for t in target_manager.get_all_targets(targets)]


def test_registered_targets():
    assert target_manager.target_names == ["svt-av1", "opus", "dav1d", "zimg", "ffmpeg"]
    assert target_manager.get_target("ffmpeg").project_class is BuildFFmpeg
    assert set(target_manager.get_target("ffmpeg").dependencies) == {"svt-av1", "opus", "dav1d", "zimg"}


def test_all_targets_by_default():
    assert _sort_targets([]) == ["svt-av1", "opus", "dav1d", "zimg", "ffmpeg"]


@pytest.mark.parametrize(
    ("targets", "expected"),
    [
        pytest.param(["ffmpeg", "svt-av1"], ["svt-av1", "ffmpeg"], id="dependency first"),
        pytest.param(["zimg", "opus"], ["opus", "zimg"], id="registration order"),
        pytest.param(["ffmpeg"], ["ffmpeg"], id="dependencies are not added implicitly"),
        pytest.param(["dav1d", "dav1d"], ["dav1d"], id="no duplicates"),
    ],
)
def test_target_order(targets, expected):
    assert _sort_targets(targets) == expected


def test_unknown_target():
    with pytest.raises(UnknownTargetError, match="Target libx264 does not exist. Valid choices are svt-av1, opus"):
        _sort_targets(["opus", "libx264"])
    with pytest.raises(KeyError):
        target_manager.get_target("libx264")


def test_dependency_order_not_registration_order():
    manager = TargetManager()

    class Consumer(Project):
        do_not_add_to_targets = True
        target = "consumer"
        dependencies = ("library",)

    class Library(Project):
        do_not_add_to_targets = True
        target = "library"

    manager.add_target(Target("consumer", Consumer))
    manager.add_target(Target("library", Library))
    assert [t.name for t in manager.get_all_targets([])] == ["library", "consumer"]
    assert [t.name for t in manager.get_all_targets(["consumer"])] == ["consumer"]
