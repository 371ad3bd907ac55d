"""Kernel: domain models, ports, graph layer and orchestration."""
