"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
)


# Application info
APP_INFO = Info("bluegreen", "Blue/green deployment orchestrator info")
APP_INFO.info({
    "version": "1.0.0",
    "service": "bluegreen-orchestrator",
})

# Deployment metrics
DEPLOYMENTS_TOTAL = Counter(
    "bluegreen_deployments_total",
    "Total number of finished deployments",
    ["status", "environment"],
)

DEPLOYMENT_DURATION = Histogram(
    "bluegreen_deployment_duration_seconds",
    "Time from submission to terminal state",
    ["environment", "status"],
    buckets=[10, 30, 60, 120, 300, 600, 1800],
)

ACTIVE_DEPLOYMENTS = Gauge(
    "bluegreen_active_deployments",
    "Number of deployments currently in a non-terminal state",
    ["environment"],
)

DEPLOYMENTS_REJECTED = Counter(
    "bluegreen_deployments_rejected_total",
    "Deployments refused at admission",
    ["environment", "reason"],
)

# Component metrics
VALIDATION_STEPS_TOTAL = Counter(
    "bluegreen_validation_steps_total",
    "Validation steps executed",
    ["kind", "result"],
)

HEALTH_CHECKS_TOTAL = Counter(
    "bluegreen_health_checks_total",
    "Health probe rounds",
    ["environment", "color", "result"],
)

TRAFFIC_SWITCHES_TOTAL = Counter(
    "bluegreen_traffic_switches_total",
    "Traffic switch attempts",
    ["environment", "result"],
)

ROLLBACKS_TOTAL = Counter(
    "bluegreen_rollbacks_total",
    "Rollback attempts",
    ["trigger", "result"],
)

HOOKS_TOTAL = Counter(
    "bluegreen_hooks_total",
    "Lifecycle hook executions",
    ["phase", "result"],
)

DISTRIBUTED_LOCK_OPERATIONS = Counter(
    "bluegreen_distributed_lock_operations_total",
    "Total distributed lock operations",
    ["operation", "result"],  # operation: acquire/release, result: success/failure
)
