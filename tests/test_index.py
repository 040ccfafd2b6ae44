import json

import pytest
import responses

from crate_release.index import INDEX_URL, CratesIoIndex, IndexKrate, RemoteIndex


def body(*versions):
    return "\n".join(json.dumps({"name": "demo-crate", "vers": v}) for v in versions) + "\n"


DEMO_URL = INDEX_URL + "de/mo/demo-crate"


def test_parse_index_body():
    krate = IndexKrate.parse("demo-crate", body("0.1.0", "0.2.0"))
    assert krate.version_numbers == ["0.1.0", "0.2.0"]


def test_has_krate_version():
    index = CratesIoIndex()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DEMO_URL, body=body("0.1.0", "0.2.0"), status=200)
        assert index.has_krate(None, "demo-crate") is True
        assert index.has_krate_version(None, "demo-crate", "0.2.0") is True
        assert index.has_krate_version(None, "demo-crate", "0.3.0") is False
        assert len(rsps.calls) == 1


def test_unknown_crate():
    index = CratesIoIndex()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DEMO_URL, status=404)
        assert index.has_krate(None, "demo-crate") is False
        assert index.has_krate_version(None, "demo-crate", "1.0.0") is None


def test_alternative_registry_is_not_queried():
    index = CratesIoIndex()
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        assert index.krate("alt", "demo-crate") is None
        assert index.has_krate_version("alt", "demo-crate", "1.0.0") is None
        assert len(rsps.calls) == 0


def test_update_krate_refetches_with_etag():
    index = CratesIoIndex()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DEMO_URL, body=body("0.1.0"), status=200, headers={"ETag": "tag-1"})
        rsps.add(responses.GET, DEMO_URL, status=304)
        assert index.has_krate_version(None, "demo-crate", "0.1.0") is True
        index.update_krate(None, "demo-crate")
        assert index.has_krate_version(None, "demo-crate", "0.1.0") is True
        assert len(rsps.calls) == 2
        assert rsps.calls[1].request.headers["If-None-Match"] == "tag-1"


def test_update_krate_ignores_alternative_registry():
    index = CratesIoIndex()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DEMO_URL, body=body("0.1.0"), status=200)
        first = index.krate(None, "demo-crate")
        index.update_krate("alt", "demo-crate")
        second = index.krate(None, "demo-crate")
        assert first.version_numbers == ["0.1.0"]
        assert second.version_numbers == ["0.1.0"]
        assert len(rsps.calls) == 1


@pytest.mark.parametrize(
    "name, path",
    [("a", "1/a"), ("ab", "2/ab"), ("abc", "3/a/abc"), ("Demo-Crate", "de/mo/demo-crate")],
)
def test_remote_index_paths(name, path):
    remote = RemoteIndex.open()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, INDEX_URL + path, body=body("1.0.0"), status=200)
        krate = remote.krate(name)
        assert krate.name == name
        assert krate.version_numbers == ["1.0.0"]


def test_invalid_crate_name():
    with pytest.raises(ValueError):
        RemoteIndex.open().krate("not a crate")


def test_server_error_raises():
    index = CratesIoIndex()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DEMO_URL, status=500)
        rsps.add(responses.GET, DEMO_URL, body=body("0.1.0"), status=200)
        with pytest.raises(Exception) as info:
            index.krate(None, "demo-crate")
        assert "500" in str(info.value)
        krate = index.krate(None, "demo-crate")
        assert krate.version_numbers == ["0.1.0"]
        assert len(rsps.calls) == 2