import pytest

from ifsync.classifier import EventClassifier, classify, join_path
from ifsync.events import Event, EventKind

ADDRESS_STATE = (
    "/interfaces/interface[name=Ethernet1]/subinterfaces/subinterface[index=0]"
    "/ipv4/addresses/address[ip=10.0.1.1]/state"
)


@pytest.mark.parametrize(
    "path, kind",
    [
        ("/interfaces/interface[name=Ethernet1]/state/admin-status", EventKind.ADMIN_STATUS),
        (ADDRESS_STATE + "/ip", EventKind.ADDRESS),
        (ADDRESS_STATE + "/prefix-length", EventKind.PREFIX_LENGTH),
    ],
)
def test_classify_known_leaves(path, kind):
    event = classify(path, "value")

    assert event == Event(kind=kind, interface="Ethernet1", value="value")


@pytest.mark.parametrize(
    "path",
    [
        "/interfaces/interface[name=Management1]/state/admin-status",
        "/interfaces/interface[name=Ethernet1]/state/oper-status",
        ADDRESS_STATE + "/origin",
        "/system/state/hostname",
        "",
    ],
)
def test_classify_miss_is_unknown(path):
    event = classify(path, "x")

    assert event.kind is EventKind.UNKNOWN
    assert event.interface is None


def test_classify_extracts_full_interface_name():
    event = classify("/interfaces/interface[name=Ethernet3/1]/state/admin-status", "UP")

    assert event.interface == "Ethernet3/1"


def test_custom_name_pattern():
    classifier = EventClassifier(r"(?:Ethernet|Management)[^\]]*")

    event = classifier.classify(
        "/interfaces/interface[name=Management1]/state/admin-status", "UP"
    )

    assert event.kind is EventKind.ADMIN_STATUS
    assert event.interface == "Management1"


@pytest.mark.parametrize(
    "prefix, path, expected",
    [
        ("/interfaces/interface[name=Ethernet1]", "state/admin-status",
         "/interfaces/interface[name=Ethernet1]/state/admin-status"),
        ("interfaces/interface[name=Ethernet1]/", "/state/admin-status",
         "/interfaces/interface[name=Ethernet1]/state/admin-status"),
        ("", "interfaces/interface[name=Ethernet1]/state/admin-status",
         "/interfaces/interface[name=Ethernet1]/state/admin-status"),
        ("/", "", "/"),
    ],
)
def test_join_path(prefix, path, expected):
    assert join_path(prefix, path) == expected
