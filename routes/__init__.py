from routes.health import health_bp
from routes.access import access_bp
from routes.reservations import reservations_bp
from routes.chalans import chalans_bp
from routes.audit_logs import audit_bp
