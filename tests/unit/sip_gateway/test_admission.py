from __future__ import annotations

import threading

from sip_gateway.app.admission import CallAdmissionLedger


def test_first_admission_wins_and_later_ones_lose() -> None:
    ledger = CallAdmissionLedger()

    results = [ledger.try_admit("rtc_abc") for _ in range(4)]

    assert results == [True, False, False, False]
    assert "rtc_abc" in ledger
    assert len(ledger) == 1


def test_distinct_call_ids_are_admitted_independently() -> None:
    ledger = CallAdmissionLedger()

    assert ledger.try_admit("rtc_a") is True
    assert ledger.try_admit("rtc_b") is True
    assert ledger.try_admit("rtc_a") is False
    assert len(ledger) == 2
    assert "rtc_c" not in ledger


def test_concurrent_admission_has_a_single_winner() -> None:
    ledger = CallAdmissionLedger()
    barrier = threading.Barrier(8)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        admitted = ledger.try_admit("rtc_race")
        with results_lock:
            results.append(admitted)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert results.count(False) == 7
