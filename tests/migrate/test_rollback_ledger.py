import threading
from pathlib import Path

from lakeshift.io.fs import LocalFileIO
from lakeshift.migrate.ledger import RollbackLedger


def test_concurrent_records_are_not_lost() -> None:
    ledger = RollbackLedger()

    def worker(n: int) -> None:
        for i in range(200):
            ledger.record(f"/new/{n}/{i}", f"/old/{n}/{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(ledger) == 8 * 200


def test_reverse_restores_and_is_idempotent(tmp_path: Path) -> None:
    fio = LocalFileIO()
    src = tmp_path / "src"
    dst = tmp_path / "dst" / "bucket-0"
    src.mkdir()
    (src / "a").write_text("a")
    (src / "b").write_text("b")
    ledger = RollbackLedger()
    ledger.record_directory(str(tmp_path / "dst"))
    ledger.record_directory(str(dst))
    fio.makedirs(str(dst))
    for name in ("a", "b"):
        ledger.record(str(dst / name), str(src / name))
        fio.rename(str(src / name), str(dst / name))
    # an entry whose rename never happened
    ledger.record(str(dst / "c"), str(src / "c"))

    report = ledger.reverse(fio)

    assert sorted(report.restored) == [str(src / "a"), str(src / "b")]
    assert report.skipped == [str(dst / "c")]
    assert report.errors == []
    assert (src / "a").read_text() == "a"
    assert not (tmp_path / "dst").exists()
    assert sorted(report.removed_dirs) == sorted([str(tmp_path / "dst"), str(dst)])

    again = ledger.reverse(fio)
    assert again.restored == []
    assert len(again.skipped) == 3


def test_reverse_keeps_non_empty_directories(tmp_path: Path) -> None:
    fio = LocalFileIO()
    d = tmp_path / "part"
    d.mkdir()
    (d / "foreign").write_text("x")
    ledger = RollbackLedger()
    ledger.record_directory(str(d))
    report = ledger.reverse(fio)
    assert report.removed_dirs == []
    assert (d / "foreign").exists()


def test_reverse_collects_errors_and_continues(tmp_path: Path) -> None:
    fio = LocalFileIO()
    (tmp_path / "moved").write_text("1")
    (tmp_path / "occupied").write_text("2")
    (tmp_path / "moved2").write_text("3")
    ledger = RollbackLedger()
    ledger.record(str(tmp_path / "moved"), str(tmp_path / "occupied"))
    ledger.record(str(tmp_path / "moved2"), str(tmp_path / "orig2"))

    report = ledger.reverse(fio)

    assert len(report.errors) == 1
    assert isinstance(report.errors[0], FileExistsError)
    assert report.restored == [str(tmp_path / "orig2")]
