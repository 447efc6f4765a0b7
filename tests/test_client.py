import random

import httpx
import pytest

from conftest import TOKEN, envelope, form_data, json_response, make_mtop_client
from feedsync.antibot import PROTOCOL_HEADERS, DelayManager, Evasion, HeaderRandomizer, UserAgentPool
from feedsync.collector_mtop.client import MtopClient
from feedsync.collector_mtop.signature import sign
from feedsync.errors import (
    EnvelopeDecodeError,
    MissingCredentialError,
    RateLimitedError,
    RemoteRejectionError,
    TransportError,
)
from feedsync.models import SessionCredential


def test_client_rejects_empty_token():
    with pytest.raises(MissingCredentialError):
        MtopClient(SessionCredential(token=""))


def test_call_builds_signed_request(credential):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return json_response(envelope({"ok": True}))

    with make_mtop_client(credential, handler) as client:
        result = client.call("mtop.taobao.idlehome.home.webpc.feed", {"pageNumber": 1})

    request = captured["request"]
    params = request.url.params
    assert request.method == "POST"
    assert request.url.path == "/h5/mtop.taobao.idlehome.home.webpc.feed/1.0/"
    assert params["jsv"] == "2.7.2"
    assert params["appKey"] == "34839810"
    assert params["v"] == "1.0"
    assert params["type"] == "originaljson"
    assert params["accountSite"] == "xianyu"
    assert params["dataType"] == "json"
    assert params["timeout"] == "20000"
    assert params["api"] == "mtop.taobao.idlehome.home.webpc.feed"
    assert params["sessionOption"] == "AutoLoginOnly"
    assert params["spm_cnt"] == "a21ybx.home.0.0"

    body = form_data(request)
    assert body["data"] == '{"pageNumber":1}'
    assert params["sign"] == sign(body["data"], TOKEN, params["t"], "34839810")

    assert request.headers["Cookie"] == f"_m_h5_tk={TOKEN}_1700000000000; cookie2=c2value"
    assert request.headers["Origin"] == "https://www.goofish.com"
    assert request.headers["Content-Type"].startswith("application/x-www-form-urlencoded")
    assert result.data == {"ok": True}
    assert result.ok


def test_detail_api_uses_item_spm(credential):
    seen = {}

    def handler(request):
        seen["spm"] = request.url.params["spm_cnt"]
        return json_response(envelope({}))

    with make_mtop_client(credential, handler) as client:
        client.call("mtop.taobao.idle.pc.detail", {"itemId": "1"})
    assert seen["spm"] == "a21ybx.item.0.0"


def test_plain_success_marker_is_accepted(credential):
    with make_mtop_client(credential, lambda r: json_response(envelope({}, ret=["SUCCESS"]))) as client:
        assert client.call("api", {}).ok


def test_rejection_without_success_marker(credential):
    handler = lambda r: json_response(envelope(None, ret=["FAIL_SYS_TOKEN_EXOIRED::令牌过期"]))
    with make_mtop_client(credential, handler) as client:
        with pytest.raises(RemoteRejectionError) as info:
            client.call("api", {})
    assert not isinstance(info.value, RateLimitedError)
    assert info.value.ret == ["FAIL_SYS_TOKEN_EXOIRED::令牌过期"]


@pytest.mark.parametrize("marker", ["RGV587_ERROR::SM::哎哟喂,被挤爆啦,请稍后重试", "FAIL_SYS_USER_VALIDATE::被挤爆啦"])
def test_rate_limit_markers(credential, marker):
    with make_mtop_client(credential, lambda r: json_response(envelope(None, ret=[marker]))) as client:
        with pytest.raises(RateLimitedError):
            client.call("api", {})


def test_non_json_body_raises_decode_error(credential):
    handler = lambda r: httpx.Response(200, content=b"<html>blocked</html>")
    with make_mtop_client(credential, handler) as client:
        with pytest.raises(EnvelopeDecodeError) as info:
            client.call("api", {})
    assert "<html>blocked</html>" in info.value.body


def test_non_object_body_raises_decode_error(credential):
    with make_mtop_client(credential, lambda r: json_response([1, 2])) as client:
        with pytest.raises(EnvelopeDecodeError):
            client.call("api", {})


def test_transport_failure_is_wrapped(credential):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with make_mtop_client(credential, handler) as client:
        with pytest.raises(TransportError) as info:
            client.call("api", {})
    assert isinstance(info.value.__cause__, httpx.ConnectTimeout)


def test_evasion_randomizes_headers_and_waits(credential):
    slept = []
    pool = UserAgentPool.from_lists(["UA-TEST"], ["en-US"], ["https://h5.m.goofish.com/"])
    rng = random.Random(1)
    evasion = Evasion(
        headers=HeaderRandomizer(pool, rng),
        delay=DelayManager(10, 20, rng=rng, sleep=slept.append),
    )
    captured = {}

    def handler(request):
        captured["headers"] = request.headers
        return json_response(envelope({}))

    with make_mtop_client(credential, handler, evasion=evasion) as client:
        client.call("api", {})

    headers = captured["headers"]
    assert headers["User-Agent"] == "UA-TEST"
    assert headers["Accept-Language"] == "en-US"
    assert headers["Referer"] == "https://h5.m.goofish.com/"
    for name, value in PROTOCOL_HEADERS.items():
        assert headers[name] == value
    assert len(slept) == 1
