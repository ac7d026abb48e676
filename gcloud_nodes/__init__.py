"""
Google Cloud integration nodes for flow-based automation

  - iot  (message hub: device relay over MQTT bridge / HTTP)
  - gcs  (write payloads to Cloud Storage objects)
"""

__version__ = "0.3.0"
