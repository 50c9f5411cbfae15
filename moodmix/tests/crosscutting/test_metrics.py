import json

from moodmix.crosscutting.metrics import BatchMetrics, MetricsCollector


class TestMetricsCollector:
    """Tests for fan-out metrics."""

    def setup_method(self):
        self.collector = MetricsCollector('gen-1')

    def test_batches_roll_up_into_generation_totals(self):
        with self.collector.batch_context('general'):
            self.collector.record_fulfilled(3)
            self.collector.record_rejected()
            self.collector.record_fulfilled(2)
        with self.collector.batch_context('personalized'):
            self.collector.record_fulfilled(1)

        metrics = self.collector.finish()

        assert [b.batch_id for b in metrics.batches] == ['general', 'personalized']
        assert metrics.total_calls == 4
        assert metrics.total_fulfilled == 3
        assert metrics.total_rejected == 1
        assert metrics.total_items == 6
        assert metrics.overall_rejected_rate == 0.25
        assert metrics.batches[0].fulfilled_count == 2
        assert metrics.end_time is not None

    def test_records_outside_a_batch_are_ignored(self):
        self.collector.record_fulfilled(5)
        self.collector.record_rejected()

        assert self.collector.finish().total_calls == 0

    def test_batch_closed_even_when_body_raises(self):
        try:
            with self.collector.batch_context('general'):
                self.collector.record_rejected()
                raise RuntimeError('stop')
        except RuntimeError:
            pass

        assert self.collector.metrics.total_rejected == 1

    def test_empty_batch_is_recorded(self):
        with self.collector.batch_context('empty'):
            pass
        batch = self.collector.metrics.batches[0]

        assert isinstance(batch, BatchMetrics)
        assert batch.call_count == 0
        assert self.collector.finish().overall_rejected_rate == 0.0

    def test_to_dict_is_json_serializable(self):
        with self.collector.batch_context('general'):
            self.collector.record_fulfilled(1)
        self.collector.finish()

        data = json.loads(json.dumps(self.collector.to_dict()))

        assert data['generation_id'] == 'gen-1'
        assert data['total_items'] == 1
        assert isinstance(data['start_time'], str)
        assert isinstance(data['batches'][0]['end_time'], str)
