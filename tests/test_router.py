from __future__ import annotations

import asyncio

from conftest import ORIGIN_URL, TARGET_URL, UPLOAD_URL
from snapcapture.capture_manager.router import MessageRouter
from snapcapture.constants import HIDE_UI, PAGE_ACTIVATE, SHOW_UI, UI_CANCEL, UI_READY, UI_SAVE
from snapcapture.models.session import SessionStatus


def _activation(**overrides) -> dict:
    payload = {"type": PAGE_ACTIVATE, "url": TARGET_URL, "target": UPLOAD_URL, "token": "tok"}
    payload.update(overrides)
    return payload


def test_activation_is_dispatched(tabs, uploader, make_workflow) -> None:
    wf = make_workflow(tabs, uploader)
    router = MessageRouter(wf)

    async def _main() -> None:
        assert router.handle(1, ORIGIN_URL, _activation()) is not None
        await router.drain()

    asyncio.run(_main())
    assert wf.session.status is SessionStatus.AWAITING_SELECTION
    assert wf.session.auth_token == "tok"
    assert router.pending == 0


def test_back_to_back_activations_start_one_session(tabs, uploader, make_workflow) -> None:
    wf = make_workflow(tabs, uploader)
    router = MessageRouter(wf)

    async def _main() -> list:
        first = router.handle(1, ORIGIN_URL, _activation())
        second = router.handle(1, ORIGIN_URL, _activation())
        return await asyncio.gather(first, second)

    assert asyncio.run(_main()) == [True, False]
    assert tabs.updates == [(1, TARGET_URL)]


def test_malformed_activations_are_dropped(tabs, uploader, make_workflow) -> None:
    wf = make_workflow(tabs, uploader)
    router = MessageRouter(wf)

    bad = [
        _activation(url=""),
        _activation(url="not a url"),
        _activation(url="https://a.test/" + "x" * 2048),
        _activation(target=None),
        _activation(target="   "),
        _activation(token="t" * 257),
        {"type": PAGE_ACTIVATE},
    ]

    async def _main() -> list:
        return [router.handle(1, ORIGIN_URL, payload) for payload in bad]

    assert asyncio.run(_main()) == [None] * len(bad)
    assert wf.session.is_idle
    assert tabs.sent == []


def test_activation_without_sender_tab_is_dropped(tabs, uploader, make_workflow) -> None:
    router = MessageRouter(make_workflow(tabs, uploader))

    async def _main():
        return router.handle(None, None, _activation())

    assert asyncio.run(_main()) is None


def test_ui_messages_reach_the_workflow(tabs, uploader, make_workflow) -> None:
    wf = make_workflow(tabs, uploader)
    router = MessageRouter(wf)

    async def _main() -> None:
        router.handle(1, ORIGIN_URL, _activation())
        await router.drain()
        router.handle(1, TARGET_URL, {"type": UI_READY})
        await router.drain()
        router.handle(1, TARGET_URL, {"type": UI_SAVE, "rect": {"x": 1, "y": 2, "w": 30, "h": 40}})
        await router.drain()

    asyncio.run(_main())
    assert tabs.sent_types(1) == [SHOW_UI, SHOW_UI, HIDE_UI]
    assert uploader.calls[0]["rect"].model_dump() == {"x": 1, "y": 2, "w": 30, "h": 40}
    assert wf.session.is_idle


def test_cancel_and_hide_are_routed(tabs, uploader, make_workflow) -> None:
    wf = make_workflow(tabs, uploader)
    router = MessageRouter(wf)

    async def _main() -> None:
        router.handle(1, ORIGIN_URL, _activation())
        await router.drain()
        router.handle(1, TARGET_URL, {"type": UI_CANCEL})
        await router.drain()
        router.handle(None, None, {"type": HIDE_UI})
        await router.drain()

    asyncio.run(_main())
    assert wf.session.is_idle
    assert uploader.calls == []
    assert tabs.sent_types(2) == [HIDE_UI]


def test_unknown_and_untyped_messages_are_ignored(tabs, uploader, make_workflow) -> None:
    router = MessageRouter(make_workflow(tabs, uploader))

    async def _main() -> list:
        return [
            router.handle(1, ORIGIN_URL, {"type": "SOMETHING_ELSE"}),
            router.handle(1, ORIGIN_URL, {"rect": {}}),
            router.handle(1, ORIGIN_URL, "PAGE_ACTIVATE"),
            router.handle(1, ORIGIN_URL, None),
        ]

    assert asyncio.run(_main()) == [None, None, None, None]
