"""API routers."""

from cuotas.api.routes import concepts, delinquency, dues, dues_config, invoices, payments, payroll, reports

ROUTERS = [
    dues_config.router,
    concepts.router,
    dues.router,
    payments.router,
    delinquency.router,
    payroll.workers_router,
    payroll.router,
    reports.router,
    invoices.router,
]

__all__ = ["ROUTERS"]
