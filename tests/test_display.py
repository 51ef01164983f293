import asyncio

from gatepass.holder.display import ProofDisplay
from gatepass.security.proofs import operations

from conftest import FakeClock

SECRET = b"\x07" * 32


def test_frame_matches_generator():
    clock = FakeClock(3005)
    display = ProofDisplay("TKT-1", SECRET, on_rotate=lambda frame: None, clock=clock)

    frame = display.frame()
    assert frame.window_index == 100
    assert frame.proof == operations.current_proof(SECRET, 3005)
    assert frame.seconds_remaining == 25
    assert operations.decode_qr_payload(frame.qr_payload) == ("TKT-1", frame.proof)


def test_refresh_rotates_only_on_window_change():
    clock = FakeClock(3005)
    rotations = []
    ticks = []
    display = ProofDisplay("TKT-1", SECRET, on_rotate=rotations.append, on_tick=ticks.append, clock=clock)

    display.refresh()
    clock.now = 3020
    display.refresh()
    clock.now = 3031
    display.refresh()

    assert [frame.window_index for frame in rotations] == [100, 101]
    assert [frame.seconds_remaining for frame in ticks] == [25, 10, 29]
    assert display.current.window_index == 101


def test_run_loop_rotates_and_stops_on_cancel():
    clock = FakeClock(3005)
    rotations = []

    async def fake_sleep(seconds: float) -> None:
        clock.now += seconds
        await asyncio.sleep(0)

    async def scenario():
        display = ProofDisplay("TKT-1", SECRET, on_rotate=rotations.append, clock=clock, sleep=fake_sleep)
        task = display.start()
        while len(rotations) < 3:
            await asyncio.sleep(0)
        await display.stop()
        return task

    task = asyncio.run(scenario())

    assert task.cancelled()
    assert [frame.window_index for frame in rotations] == [100, 101, 102]
    assert len({frame.proof for frame in rotations}) == 3
