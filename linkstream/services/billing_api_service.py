"""Business logic handlers for subscription billing APIs."""

ACTIVE_SUBSCRIPTION_STATUSES = {'active', 'trialing'}
LAPSED_SUBSCRIPTION_STATUSES = {'canceled', 'unpaid', 'incomplete_expired'}


def get_config(app_ctx):
    price_ids = app_ctx.tier_service.price_ids_by_tier()
    return app_ctx.jsonify({
        'stripe_publishable_key': app_ctx.STRIPE_PUBLISHABLE_KEY,
        'tiers': {
            tier: dict(app_ctx.tier_service.public_tier_payload(tier), purchasable=bool(price_ids.get(tier)))
            for tier in app_ctx.tier_service.VALID_TIERS
        },
    })


def _frontend_base(app_ctx, request):
    return app_ctx.APP_BASE_URL or request.host_url.rstrip('/')


def create_checkout_session(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Please sign in to continue'}), 401

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    allowed_checkout, retry_after = app_ctx.check_rate_limit(
        key=f"checkout:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.CHECKOUT_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.CHECKOUT_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_checkout:
        app_ctx.log_rate_limit_hit('checkout', retry_after)
        return app_ctx.build_rate_limited_response(
            'Too many checkout attempts. Please wait before starting another checkout.',
            retry_after,
        )

    data = request.get_json(silent=True) or {}
    tier = str(data.get('tier', '') or '').strip().lower()
    if tier not in app_ctx.tier_service.PURCHASABLE_TIERS:
        return app_ctx.jsonify({'error': 'Invalid subscription tier selected'}), 400
    price_id = app_ctx.tier_service.price_ids_by_tier().get(tier, '')
    if not price_id:
        return app_ctx.jsonify({'error': 'This plan is not available for purchase yet'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    try:
        user = app_ctx.get_or_create_user(uid, email)
        customer_id = user.get('stripeCustomerId', '')
        if not customer_id:
            customer = app_ctx.stripe.Customer.create(email=email or None, metadata={'uid': uid})
            customer_id = customer.id
            app_ctx.users_repo.set_doc(app_ctx.db, uid, {'stripeCustomerId': customer_id}, merge=True)

        base_url = _frontend_base(app_ctx, request)
        checkout_session = app_ctx.stripe.checkout.Session.create(
            customer=customer_id,
            line_items=[{'price': price_id, 'quantity': 1}],
            mode='subscription',
            client_reference_id=uid,
            success_url=base_url + '/dashboard?success=true&session_id={CHECKOUT_SESSION_ID}',
            cancel_url=base_url + '/dashboard?canceled=true',
            metadata={'uid': uid, 'tier': tier},
            subscription_data={'metadata': {'uid': uid, 'tier': tier}},
        )
        return app_ctx.jsonify({'checkout_url': checkout_session.url, 'session_id': checkout_session.id})
    except Exception as e:
        app_ctx.logger.error(f"Stripe checkout error: {e}")
        return app_ctx.jsonify({'error': 'Could not create checkout session. Please try again.'}), 500


def get_subscription_status(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    user = app_ctx.get_or_create_user(uid, decoded_token.get('email', ''))
    tier = app_ctx.tier_service.normalize_tier(user.get('tier'))
    count = app_ctx.get_backups_this_month(uid)
    return app_ctx.jsonify({
        'tier': tier,
        'subscriptionStatus': user.get('subscriptionStatus', 'none' if tier == 'free' else 'active'),
        'hasStripeCustomer': bool(user.get('stripeCustomerId')),
        'teamId': user.get('teamId'),
        'limits': app_ctx.tier_service.public_tier_payload(tier),
        'usage': app_ctx.usage_service.usage_summary(tier, count),
    })


def manage_subscription(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401
    if not app_ctx.validate_csrf(request):
        return app_ctx.build_csrf_failed_response()
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503
    if not app_ctx.stripe.api_key:
        return app_ctx.jsonify({'error': 'Stripe not configured'}), 500

    uid = decoded_token['uid']
    snapshot = app_ctx.users_repo.get_doc(app_ctx.db, uid)
    if not snapshot.exists:
        return app_ctx.jsonify({'error': 'User not found'}), 404
    customer_id = (snapshot.to_dict() or {}).get('stripeCustomerId', '')
    if not customer_id:
        return app_ctx.jsonify({'error': 'No billing account found for this user'}), 400
    try:
        portal = app_ctx.stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=_frontend_base(app_ctx, request) + '/dashboard/subscription',
        )
        return app_ctx.jsonify({'url': portal.url})
    except Exception as e:
        app_ctx.logger.error(f"Stripe billing portal error for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not open billing portal'}), 500


def _tier_from_checkout_session(app_ctx, session):
    metadata = session.get('metadata', {}) or {}
    tier = str(metadata.get('tier', '') or '').strip().lower()
    if tier in app_ctx.tier_service.PURCHASABLE_TIERS:
        return tier
    full = app_ctx.stripe.checkout.Session.retrieve(session.get('id', ''), expand=['line_items.data.price'])
    items = ((full.get('line_items', {}) or {}).get('data', []) or [])
    price_id = ((items[0].get('price', {}) or {}).get('id', '')) if items else ''
    return app_ctx.tier_service.tier_for_price_id(price_id)


def _tier_from_subscription(app_ctx, subscription):
    items = ((subscription.get('items', {}) or {}).get('data', []) or [])
    if not items:
        return ''
    price_id = (items[0].get('price', {}) or {}).get('id', '')
    return app_ctx.tier_service.tier_for_price_id(price_id)


def _find_user_by_customer(app_ctx, customer_id):
    if not customer_id:
        return None
    return app_ctx.users_repo.find_by_stripe_customer(app_ctx.db, customer_id)


def handle_checkout_completed(app_ctx, session):
    metadata = session.get('metadata', {}) or {}
    uid = session.get('client_reference_id') or metadata.get('uid', '')
    tier = _tier_from_checkout_session(app_ctx, session)
    if not uid or not tier:
        app_ctx.logger.warning(f"⚠️ Checkout session {session.get('id', '')} missing uid or tier")
        return False
    app_ctx.users_repo.set_doc(app_ctx.db, uid, {
        'tier': tier,
        'stripeCustomerId': session.get('customer') or None,
        'stripeSubscriptionId': session.get('subscription') or None,
        'subscriptionStatus': 'active',
        'lastCheckoutSessionId': session.get('id', ''),
        'updatedAt': app_ctx.time.time(),
    }, merge=True)
    app_ctx.logger.info(f"✅ Subscription checkout complete: user '{uid}' upgraded to '{tier}'")
    return True


def handle_subscription_updated(app_ctx, subscription):
    user_doc = _find_user_by_customer(app_ctx, subscription.get('customer', ''))
    if user_doc is None:
        app_ctx.logger.warning(f"⚠️ No user for Stripe customer {subscription.get('customer', '')}")
        return False
    status = str(subscription.get('status', '') or '')
    updates = {
        'stripeSubscriptionId': subscription.get('id'),
        'subscriptionStatus': status,
        'updatedAt': app_ctx.time.time(),
    }
    tier = _tier_from_subscription(app_ctx, subscription)
    if status in ACTIVE_SUBSCRIPTION_STATUSES and tier:
        updates['tier'] = tier
    elif status in LAPSED_SUBSCRIPTION_STATUSES:
        updates['tier'] = 'free'
    app_ctx.users_repo.set_doc(app_ctx.db, user_doc.id, updates, merge=True)
    return True


def handle_subscription_deleted(app_ctx, subscription):
    user_doc = _find_user_by_customer(app_ctx, subscription.get('customer', ''))
    if user_doc is None:
        return False
    app_ctx.users_repo.set_doc(app_ctx.db, user_doc.id, {
        'tier': 'free',
        'stripeSubscriptionId': None,
        'subscriptionStatus': 'canceled',
        'updatedAt': app_ctx.time.time(),
    }, merge=True)
    app_ctx.logger.info(f"ℹ️ Subscription cancelled for user '{user_doc.id}', reverted to free")
    return True


def handle_invoice_status(app_ctx, invoice, status):
    user_doc = _find_user_by_customer(app_ctx, invoice.get('customer', ''))
    if user_doc is None:
        return False
    app_ctx.users_repo.set_doc(app_ctx.db, user_doc.id, {
        'subscriptionStatus': status,
        'updatedAt': app_ctx.time.time(),
    }, merge=True)
    return True


def stripe_webhook(app_ctx, request):
    payload = request.data
    sig_header = request.headers.get('Stripe-Signature', '')

    if app_ctx.STRIPE_WEBHOOK_SECRET:
        try:
            event = app_ctx.stripe.Webhook.construct_event(
                payload, sig_header, app_ctx.STRIPE_WEBHOOK_SECRET
            )
        except ValueError:
            app_ctx.logger.warning("Stripe webhook: Invalid payload")
            return app_ctx.jsonify({'error': 'Invalid payload'}), 400
        except app_ctx.stripe.error.SignatureVerificationError as e:
            app_ctx.logger.warning(f"Stripe webhook signature verification failed: {e}")
            return app_ctx.jsonify({'error': 'Invalid signature'}), 400
    else:
        app_ctx.logger.warning("⚠️ Stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
        return app_ctx.jsonify({'error': 'Webhook not configured'}), 500

    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    event_type = event.get('type', '')
    data_object = event['data']['object']
    try:
        if event_type == 'checkout.session.completed':
            handle_checkout_completed(app_ctx, data_object)
        elif event_type in ('customer.subscription.created', 'customer.subscription.updated'):
            handle_subscription_updated(app_ctx, data_object)
        elif event_type == 'customer.subscription.deleted':
            handle_subscription_deleted(app_ctx, data_object)
        elif event_type == 'invoice.payment_failed':
            handle_invoice_status(app_ctx, data_object, 'past_due')
        elif event_type == 'invoice.paid':
            handle_invoice_status(app_ctx, data_object, 'active')
    except Exception as e:
        app_ctx.logger.error(f"❌ Stripe webhook {event_type} processing error: {e}")
        return app_ctx.jsonify({'error': 'Webhook processing error'}), 500

    return app_ctx.jsonify({'received': True}), 200
