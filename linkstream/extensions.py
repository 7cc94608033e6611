def init_extensions(app) -> None:
    """Register blueprints once per app instance."""
    if app is None:
        return
    if not hasattr(app, 'extensions'):
        return
    state = app.extensions.setdefault('linkstream', {})
    if state.get('blueprints_registered'):
        return

    from linkstream.blueprints import ALL_BLUEPRINTS

    for blueprint in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint)
    state['blueprints_registered'] = True
    state['factory_initialized'] = True
