import asyncio
from concurrent.futures import Future
import threading
from typing import Any, List

from claimfill.browser.snapshot import PageSnapshot, snapshot_page
from claimfill.browser.writers import PlaywrightPageWriter, SoupPageWriter
from claimfill.forms.committer import SELECT_OPTION, SET_CHECKED, SET_VALUE
from claimfill.forms.descriptors import index_selector, parse_html
from claimfill.forms.records import WriteOp


def run_async(coro):
    future: Future[Any] = Future()

    def _worker() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(coro)
        except Exception as exc:  # pragma: no cover - propagated via future
            future.set_exception(exc)
        else:
            future.set_result(result)
        finally:
            loop.close()

    thread = threading.Thread(target=_worker, daemon=True)
    thread.start()
    thread.join()
    return future.result()


PAGE = """
<form>
  <input id="name" data-claimfill-index="0" value="">
  <textarea id="notes" data-claimfill-index="1"></textarea>
  <select id="state" data-claimfill-index="2">
    <option value="CA" selected>California</option><option value="NY">New York</option>
  </select>
  <input type="checkbox" id="agree" data-claimfill-index="3">
  <input type="radio" name="contact" value="email" data-claimfill-index="4" checked>
  <input type="radio" name="contact" value="phone" data-claimfill-index="5">
</form>
"""


def _op(index: str, action: str, **kwargs) -> WriteOp:
    return WriteOp(field_id=f"f{index}", selector=index_selector(index), action=action, **kwargs)


def test_soup_writer_applies_each_action():
    document = parse_html(PAGE)
    writer = SoupPageWriter(document)

    results = run_async(
        writer.apply(
            [
                _op("0", SET_VALUE, value="Jane"),
                _op("1", SET_VALUE, value="Arrived broken"),
                _op("2", SELECT_OPTION, value="NY"),
                _op("3", SET_CHECKED, checked=True),
                _op("5", SET_CHECKED, value="phone", checked=True),
            ]
        )
    )

    assert results == [True, True, True, True, True]
    assert document.select_one("#name")["value"] == "Jane"
    assert document.select_one("#notes").get_text() == "Arrived broken"
    assert document.select_one('option[value="NY"]').has_attr("selected")
    assert not document.select_one('option[value="CA"]').has_attr("selected")
    assert document.select_one("#agree").has_attr("checked")
    assert not document.select_one('input[value="email"]').has_attr("checked")
    assert document.select_one('input[value="phone"]').has_attr("checked")
    assert (index_selector("0"), "input") in writer.dispatched
    assert len(writer.dispatched) == 5 * 4


def test_soup_writer_reports_failures_per_op():
    writer = SoupPageWriter(parse_html(PAGE))

    results = run_async(
        writer.apply(
            [
                _op("99", SET_VALUE, value="x"),
                _op("2", SELECT_OPTION, value="TX"),
                _op("0", SET_CHECKED, checked=True),
                _op("0", "explode"),
                _op("0", SET_VALUE, value="ok"),
            ]
        )
    )

    assert results == [False, False, False, False, True]
    assert writer.dispatched == [(index_selector("0"), event) for event in ("focus", "input", "change", "blur")]


class FakePage:
    def __init__(self, result: Any) -> None:
        self.result = result
        self.calls: List[Any] = []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.calls.append((script, arg))
        return self.result


def test_playwright_writer_sends_one_batch():
    page = FakePage([True, 0])
    writer = PlaywrightPageWriter(page)

    results = run_async(writer.apply([_op("0", SET_VALUE, value="Jane"), _op("3", SET_CHECKED, checked=True)]))

    assert results == [True, False]
    assert len(page.calls) == 1
    payload = page.calls[0][1]
    assert payload[0]["selector"] == index_selector("0")
    assert payload[1]["events"] == ["focus", "input", "change", "blur"]


def test_playwright_writer_handles_malformed_results():
    writer = PlaywrightPageWriter(FakePage(None))

    assert run_async(writer.apply([_op("0", SET_VALUE, value="x")])) == [False]
    assert run_async(writer.apply([])) == []


def test_snapshot_page_reads_layout_and_values():
    page = FakePage(
        {
            "html": '<input name="email" data-claimfill-index="0"><input type="checkbox" data-claimfill-index="1" checked>',
            "boxes": {"0": 40},
            "values": {"0": {"value": "typed@example.com", "checked": None, "selected": None}, "1": {"value": "on", "checked": False}},
            "viewportHeight": 900,
            "url": "https://claims.example/form",
        }
    )

    snapshot = run_async(snapshot_page(page))

    assert isinstance(snapshot, PageSnapshot)
    assert snapshot.boxes == {"0": 40.0}
    assert snapshot.viewport_height == 900
    assert snapshot.url == "https://claims.example/form"
    document = snapshot.document()
    assert document.select_one(index_selector("0"))["value"] == "typed@example.com"
    assert not document.select_one(index_selector("1")).has_attr("checked")
