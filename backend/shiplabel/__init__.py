"""
ShipLabel Backend - Application Package Initializer
=====================================================

What: Delivery label service. A logged-in user submits sender and receiver
      details and downloads a PDF label carrying a unique delivery ID
      rendered as a Code-128 barcode.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (HTTP Layer)       │  ← status codes, headers, sessions
    ├─────────────────────────────────────┤
    │         Services (Label Pipeline)   │  ← validate, render, compose, cleanup
    ├─────────────────────────────────────┤
    │         Schemas (Pydantic)          │  ← form contract, health response
    ├─────────────────────────────────────┤
    │   Artifact Store (scratch storage)  │  ← transient barcode PNGs
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
