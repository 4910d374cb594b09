# Services package init
"""
ShipLabel Backend - Services Layer
====================================

What:  Business logic sitting between routes (HTTP) and external libraries.
How:   Services are constructed once in the application factory, stored on
       app.state and handed to routes through FastAPI dependencies.

Service Inventory:
    - identifier:      new_delivery_id() (uuid4)
    - ArtifactStore:   scratch storage for barcode PNGs (file or in-memory)
    - BarcodeRenderer: Code-128 PNG rendering (python-barcode + Pillow)
    - LabelDocumentComposer / DocumentStream: PDF layout and chunked output (reportlab)
    - LabelService:    validate → mint → render → store → compose → cleanup
    - AuthService:     bcrypt password checks against an injected UserDirectory
"""
