"""
Monitoring and metrics collection for the web crawler system.
"""

import json
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


@dataclass
class MetricPoint:
    """Queue size at one moment of the crawl."""
    timestamp: float
    value: float


class MetricsCollector:
    """
    Prometheus metrics for one crawl.

    Every collector owns its registry, so several crawls in one process never
    share counters. Totals are read back from the registry itself; the only
    extra state kept is a bounded history of queue size samples.
    """

    def __init__(self, prometheus_port: int = 8000, history_size: int = 1000):
        self.logger = logging.getLogger(__name__)
        self.prometheus_port = prometheus_port
        self.registry = CollectorRegistry()
        self.queue_history: Deque[MetricPoint] = deque(maxlen=history_size)

        self.urls_queued = Counter(
            'crawler_urls_queued_total',
            'URLs admitted into the queue',
            registry=self.registry
        )
        self.pages_fetched = Counter(
            'crawler_urls_crawled_total',
            'Pages fetched',
            registry=self.registry
        )
        self.responses = Counter(
            'crawler_http_responses_total',
            'HTTP responses by status code',
            ['status_code'],
            registry=self.registry
        )
        self.errors = Counter(
            'crawler_errors_total',
            'URLs that could not be fetched',
            registry=self.registry
        )
        self.bytes_downloaded = Counter(
            'crawler_bytes_downloaded_total',
            'Response body bytes downloaded',
            registry=self.registry
        )
        self.page_links = Histogram(
            'crawler_page_links',
            'Outbound links per fetched page',
            buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500),
            registry=self.registry
        )
        self.queue_size = Gauge(
            'crawler_queue_size',
            'URLs waiting in the queue',
            registry=self.registry
        )

    def start_prometheus_server(self):
        """Expose the registry over HTTP for Prometheus to scrape."""
        start_http_server(self.prometheus_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def record_queue_size(self, size: int):
        self.queue_size.set(size)
        self.queue_history.append(MetricPoint(timestamp=time.time(), value=size))

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, 0 if it has not been recorded yet."""
        return self.registry.get_sample_value(name, labels or {}) or 0.0

    def get_current_values(self) -> Dict[str, float]:
        """Every counter and gauge sample, keyed by sample name and labels."""
        values = {}
        for metric in self.registry.collect():
            if metric.type == 'histogram':
                continue
            for sample in metric.samples:
                if sample.name.endswith('_created'):
                    continue
                key = sample.name
                if sample.labels:
                    key += "{" + ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items())) + "}"
                values[key] = sample.value
        return values

    def export_metrics_json(self, file_path: str):
        """Write current values and the queue size history to a JSON file."""
        export_data = {
            'export_time': datetime.now(timezone.utc).isoformat(),
            'metrics': self.get_current_values(),
            'queue_history': [asdict(point) for point in self.queue_history]
        }

        with open(file_path, 'w') as f:
            json.dump(export_data, f, indent=2)

        self.logger.info(f"Metrics exported to {file_path}")


class CrawlerMonitor:
    """Feeds crawl events into a MetricsCollector."""

    def __init__(self, metrics_collector: MetricsCollector):
        self.metrics = metrics_collector
        self.start_time = time.time()

    def attach(self, scheduler) -> 'CrawlerMonitor':
        """Register observers on a CrawlerScheduler so its events are recorded."""
        frontier = scheduler.frontier

        def on_url(url):
            self.record_url_queued(str(url))
            # The URL is appended right after the observers return
            self.metrics.record_queue_size(len(frontier) + 1)

        def on_page(page):
            self.record_page_fetched(str(page.url), page.status, len(page.body), len(page.urls))
            self.metrics.record_queue_size(len(frontier))

        def on_failed(url):
            self.record_error(str(url))
            self.metrics.record_queue_size(len(frontier))

        scheduler.every_url(on_url)
        scheduler.every_page(on_page)
        scheduler.every_failed_url(on_failed)
        return self

    def record_url_queued(self, url: str):
        self.metrics.urls_queued.inc()

    def record_page_fetched(self, url: str, status_code: int, content_size: int, link_count: int):
        self.metrics.pages_fetched.inc()
        self.metrics.responses.labels(status_code=str(status_code)).inc()
        self.metrics.bytes_downloaded.inc(content_size)
        self.metrics.page_links.observe(link_count)

    def record_error(self, url: str):
        self.metrics.errors.inc()

    def get_summary(self) -> Dict[str, Any]:
        """Totals so far and the fetch rate."""
        runtime = time.time() - self.start_time
        pages = self.metrics.get_value('crawler_urls_crawled_total')

        return {
            'runtime_seconds': runtime,
            'metrics': self.metrics.get_current_values(),
            'rates': {
                'pages_per_second': pages / runtime if runtime > 0 else 0,
            }
        }


def initialize_monitoring(prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor and start its Prometheus exporter."""
    metrics_collector = MetricsCollector(prometheus_port)
    metrics_collector.start_prometheus_server()
    return CrawlerMonitor(metrics_collector)
