"""payremind - payment reminder scheduling and dispatch for outstanding orders."""

__version__ = "0.1.0"
__author__ = "payremind contributors"
