from .auth import auth_bp
from .backups import backups_bp
from .team import team_bp
from .billing import billing_bp
from .admin import admin_bp
from .account import account_bp
from .ops import ops_bp

ALL_BLUEPRINTS = (auth_bp, backups_bp, team_bp, billing_bp, admin_bp, account_bp, ops_bp)

__all__ = ['auth_bp', 'backups_bp', 'team_bp', 'billing_bp', 'admin_bp', 'account_bp', 'ops_bp', 'ALL_BLUEPRINTS']
