"""Tuition ledger package.

Attendance ledger for tuition centers: a composite-keyed store of daily
attendance marks and the client-side sync engine that keeps an in-memory
working set consistent under optimistic writes.
"""
