"""Aggregate independently built documentation trees and publish them as one site."""

__version__ = "0.1.0"
