"""Delivery transports (SMTP e-mail, Matrix, console) and the per-channel router."""
