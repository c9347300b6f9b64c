# Services package init
"""
Home Pager Backend — Services Layer
=====================================

What:  Everything that touches the control plane or its credentials.
Why:   Routes handle HTTP; services handle trust, fetching and readiness.
       Services can be unit-tested with a mock transport and temp files.

Service Inventory:
    - cluster:          Service-account paths and cluster env detection
    - trust:            Builds the outbound httpx client (CA pinning)
    - ingress_service:  Bounded, authenticated GET of the Ingress list
    - readiness:        Local readiness precondition check
"""
