"""
Subscriptions module for recurring invoicing.

- service: cadencia (Monthly/Quarterly/Annual), pausa/reanudación, operaciones masivas
- scheduler: genera una factura por ciclo vencido, exactamente una vez
- analytics: MRR/ARR, pronóstico y cohortes (solo lectura)
- tasks: tick periódico en Celery beat
"""
