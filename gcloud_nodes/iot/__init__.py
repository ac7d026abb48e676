#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Cloud IoT message hub

Device side of the Cloud IoT bridges:

  - relay   (DeviceRelay: connection pool, transport selection, status)
  - broker  (BrokerClient over paho-mqtt with device JWT auth)
  - http    (one-shot publishEvent over httpx)
  - node    (MessageHubNode: the flow node wrapping a relay)
"""
