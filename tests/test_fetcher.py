import socket

import pytest
import requests

from jenkins_exporter.fetcher import categorize_error, decode_executor_status, fetch, status_url

from conftest import UNREACHABLE


def test_status_url():
    assert status_url("http://jenkins:8080") == "http://jenkins:8080/computer/api/json"
    assert status_url("http://jenkins:8080/") == "http://jenkins:8080/computer/api/json"
    assert status_url("https://ci.example.com/jenkins") == "https://ci.example.com/jenkins/computer/api/json"


class TestDecode:
    def test_full_entry(self):
        doc = {"computer": [
            {"displayName": "master", "offline": False, "temporarilyOffline": False},
            {"displayName": "agent-1", "offline": True, "temporarilyOffline": True},
        ]}
        assert decode_executor_status(doc) == [
            {"name": "master", "offline": False, "temporarily_offline": False},
            {"name": "agent-1", "offline": True, "temporarily_offline": True},
        ]

    def test_missing_temporarily_offline(self):
        doc = {"computer": [{"displayName": "node1", "offline": False}]}
        assert decode_executor_status(doc) == [
            {"name": "node1", "offline": False, "temporarily_offline": None},
        ]

    def test_unknown_fields_ignored(self):
        doc = {
            "_class": "hudson.model.ComputerSet",
            "busyExecutors": 3,
            "computer": [{
                "_class": "hudson.slaves.SlaveComputer",
                "displayName": "node1",
                "numExecutors": 2,
                "offline": True,
                "offlineCauseReason": "disconnected",
            }],
        }
        assert decode_executor_status(doc) == [
            {"name": "node1", "offline": True, "temporarily_offline": None},
        ]

    def test_missing_fields_use_zero_values(self):
        assert decode_executor_status({"computer": [{}]}) == [
            {"name": "", "offline": False, "temporarily_offline": None},
        ]

    def test_no_computers(self):
        assert decode_executor_status({}) == []
        assert decode_executor_status({"computer": []}) == []
        assert decode_executor_status({"computer": None}) == []

    @pytest.mark.parametrize("doc", [
        [],
        "computer",
        {"computer": {"displayName": "x"}},
        {"computer": ["node1"]},
        {"computer": [{"displayName": 5, "offline": False}]},
        {"computer": [{"displayName": "x", "offline": "no"}]},
    ])
    def test_bad_shape_raises(self, doc):
        with pytest.raises(ValueError):
            decode_executor_status(doc)


class TestFetch:
    def test_success(self, jenkins):
        jenkins.set_computers([
            {"displayName": "node1", "offline": False},
            {"displayName": "node2", "offline": True, "temporarilyOffline": True},
        ])
        statuses = fetch(jenkins.url, timeout=5)
        assert statuses == [
            {"name": "node1", "offline": False, "temporarily_offline": None},
            {"name": "node2", "offline": True, "temporarily_offline": True},
        ]
        assert jenkins.hits == ["/computer/api/json"]

    def test_non_2xx_raises(self, jenkins):
        jenkins.set_raw(b"{}", status=503)
        with pytest.raises(requests.HTTPError) as exc:
            fetch(jenkins.url, timeout=5)
        assert categorize_error(exc.value) == "http"

    def test_malformed_json_raises(self, jenkins):
        jenkins.set_raw(b"<html>login</html>")
        with pytest.raises(ValueError) as exc:
            fetch(jenkins.url, timeout=5)
        assert categorize_error(exc.value) == "parse"

    def test_unreachable_raises(self):
        with pytest.raises(requests.ConnectionError) as exc:
            fetch(UNREACHABLE, timeout=5)
        assert categorize_error(exc.value) == "connection_refused"

    def test_malformed_url_raises(self):
        with pytest.raises(requests.RequestException) as exc:
            fetch("jenkins-without-scheme", timeout=5)
        assert categorize_error(exc.value) == "invalid_url"

    def test_uses_given_session(self, jenkins):
        jenkins.set_computers([{"displayName": "node1", "offline": False}])
        with requests.Session() as session:
            assert len(fetch(jenkins.url, timeout=5, session=session)) == 1


@pytest.mark.parametrize("error, expected", [
    (requests.ReadTimeout("read timed out"), "timeout"),
    (requests.ConnectTimeout("connect timed out"), "timeout"),
    (socket.timeout("timed out"), "timeout"),
    (ConnectionRefusedError("nope"), "connection_refused"),
    (requests.ConnectionError("Name or service not known"), "network"),
    (ValueError("bad document"), "parse"),
    (OSError("unreachable"), "network"),
    (RuntimeError("boom"), "other"),
])
def test_categorize_error(error, expected):
    assert categorize_error(error) == expected


def test_fetch_honours_timeout(jenkins):
    jenkins.set_computers([])
    jenkins.delay = 2.0
    with pytest.raises(requests.Timeout) as exc:
        fetch(jenkins.url, timeout=0.3)
    assert categorize_error(exc.value) == "timeout"
