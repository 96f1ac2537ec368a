"""Task tracking & performance scoring package.

This package is organized by feature modules (tasks, scoring, performance, ...)
with a thin Flask controller layer and SOLID service/repository layers.
"""
