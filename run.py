#!/usr/bin/env python3
"""
CCTV Dashboard - Entry Point
"""
import signal

from dotenv import load_dotenv

# Load environment variables before importing app
load_dotenv()

from cctv_dashboard import create_app
from cctv_dashboard.services import mqtt


def main():
    """Main entry point"""
    app = create_app()

    signal.signal(signal.SIGINT, lambda s, f: exit(0))
    signal.signal(signal.SIGTERM, lambda s, f: exit(0))

    # Status reports from camera nodes
    if app.config['MQTT_ENABLED']:
        mqtt.start(app)
    else:
        print("[MQTT] Disabled (set MQTT_ENABLED=true to receive camera status reports)")

    if app.config['DEBUG']:
        print("[Flask] WARNING: Debug mode is ENABLED (not for production!)")

    print(f"[Flask] Starting web server on http://{app.config['HOST']}:{app.config['PORT']}")
    app.run(host=app.config['HOST'], port=app.config['PORT'], debug=app.config['DEBUG'],
            threaded=True, use_reloader=False)


if __name__ == '__main__':
    main()
