from pbhost_cli.reconciler import OrphanReconciler


def test_diff(dispatcher, orchestrator):
    dispatcher.add("blog", 8123, start=False)
    dispatcher.add("shop", 8456, start=False)
    orchestrator.running = ["pocketbase_blog", "pocketbase_old"]

    orphans, not_running = OrphanReconciler(dispatcher.registry, orchestrator).diff()

    assert orphans == ["pocketbase_old"]
    assert not_running == ["pocketbase_shop"]


def test_reconcile_continues_after_failure(dispatcher, orchestrator):
    orchestrator.running = ["pocketbase_a", "pocketbase_b", "pocketbase_c"]
    orchestrator.fail_containers.add("pocketbase_b")
    manifest_before = dispatcher.manifest.read_text()

    report = OrphanReconciler(dispatcher.registry, orchestrator).reconcile()

    assert report.removed == ["pocketbase_a", "pocketbase_c"]
    assert list(report.failed) == ["pocketbase_b"]
    assert not report.ok
    assert dispatcher.manifest.read_text() == manifest_before


def test_nothing_to_do(dispatcher, orchestrator):
    dispatcher.add("blog", 8123, start=False)
    orchestrator.running = ["pocketbase_blog"]

    report = OrphanReconciler(dispatcher.registry, orchestrator).reconcile()

    assert report.ok
    assert report.removed == []
    assert report.not_running == []
    assert orchestrator.calls == []
