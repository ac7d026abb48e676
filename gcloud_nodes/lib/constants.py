"""
  File with all constants in project
"""


class Transport:
    """Outbound delivery mechanisms of the message hub"""
    MQTT = "MQTT"
    HTTP = "HTTP"


# Node type names as they appear in flow files
NODE_TYPE_MESSAGE_HUB = "google-cloud-iot message-hub"
NODE_TYPE_GCS_WRITE = "google-cloud-gcs-write"

# Cloud IoT MQTT bridge
MQTT_BRIDGE_HOST = "mqtt.googleapis.com"
MQTT_BRIDGE_PORT = 8883
MQTT_KEEPALIVE = 60
MQTT_USERNAME = "unused"  # the bridge ignores it, auth is the JWT password
CONFIG_QOS = 1
COMMANDS_QOS = 0
EVENTS_QOS = 1
DEFAULT_EVENT_TOPIC = "events"

# Cloud IoT HTTP bridge
HTTP_BRIDGE_ENDPOINT = "https://cloudiotdevice.googleapis.com/v1"
HTTP_TIMEOUT = 30.0

# Device JWT
JWT_ALGORITHMS = ("RS256", "ES256")
JWT_DEFAULT_ALGORITHM = "RS256"
JWT_EXPIRES_MINUTES = 60
