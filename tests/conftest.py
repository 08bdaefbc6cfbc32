from task_pilot.log import configure_logging

# Route structlog through stdlib logging so caplog sees every event.
configure_logging("INFO")
