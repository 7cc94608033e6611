from flask import Blueprint, request

from linkstream.services import billing_api_service

billing_bp = Blueprint('billing_api', __name__)


@billing_bp.route('/api/config', methods=['GET'])
def get_config():
    from linkstream import runtime

    return billing_api_service.get_config(runtime)


@billing_bp.route('/api/create-checkout-session', methods=['POST'])
def create_checkout_session():
    from linkstream import runtime

    return billing_api_service.create_checkout_session(runtime, request)


@billing_bp.route('/api/subscription/status', methods=['GET'])
def subscription_status():
    from linkstream import runtime

    return billing_api_service.get_subscription_status(runtime, request)


@billing_bp.route('/api/subscription/manage', methods=['POST'])
def manage_subscription():
    from linkstream import runtime

    return billing_api_service.manage_subscription(runtime, request)


@billing_bp.route('/api/stripe/webhook', methods=['POST'])
def stripe_webhook():
    from linkstream import runtime

    return billing_api_service.stripe_webhook(runtime, request)
