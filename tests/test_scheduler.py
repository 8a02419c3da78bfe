"""
Tests for batch partitioning, waves and the batch state machine.
"""
import pytest

from dupscout.pool.scheduler import BatchJob, BatchScheduler, BatchState, PoolConfig


class TestPartition:
    def test_97_items_batch_10_workers_4(self):
        scheduler = BatchScheduler(PoolConfig(worker_count=4, batch_size=10))
        items = list(range(97))

        batches = scheduler.partition(items)
        waves = scheduler.waves(batches)

        assert len(batches) == 10
        assert len(batches[-1]) == 7
        assert [len(w) for w in waves] == [4, 4, 2]
        assert scheduler.wave_count(97) == 3

    def test_every_item_dispatched_once_in_order(self):
        scheduler = BatchScheduler(PoolConfig(worker_count=3, batch_size=4))
        items = list(range(23))

        batches = scheduler.partition(items)

        assert [item for batch in batches for item in batch.items] == items
        assert [b.batch_index for b in batches] == list(range(6))

    @pytest.mark.parametrize("n,b,w", [(0, 5, 2), (1, 5, 2), (10, 5, 2), (11, 5, 2), (100, 1, 7)])
    def test_wave_count_formula(self, n, b, w):
        scheduler = BatchScheduler(PoolConfig(worker_count=w, batch_size=b))

        assert len(scheduler.waves(scheduler.partition(list(range(n))))) == scheduler.wave_count(n)


class TestBatchState:
    def test_lifecycle(self):
        batch = BatchJob(batch_index=0, items=[1, 2])
        assert batch.state is BatchState.PENDING

        batch.mark_dispatched()
        batch.mark_completed()

        assert batch.state.is_terminal

    def test_terminal_states_are_final(self):
        batch = BatchJob(batch_index=0, items=[1])
        batch.mark_dispatched()
        batch.mark_failed()

        with pytest.raises(RuntimeError):
            batch.mark_completed()
        with pytest.raises(RuntimeError):
            batch.mark_dispatched()

    def test_cannot_complete_undispatched(self):
        with pytest.raises(RuntimeError):
            BatchJob(batch_index=0, items=[]).mark_completed()


class TestPoolConfig:
    @pytest.mark.parametrize("kwargs", [
        {"worker_count": 0},
        {"batch_size": 0},
        {"batch_timeout": 0},
        {"poll_interval": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            PoolConfig(**kwargs)

    def test_timeout_can_be_disabled(self):
        assert PoolConfig(batch_timeout=None).batch_timeout is None
