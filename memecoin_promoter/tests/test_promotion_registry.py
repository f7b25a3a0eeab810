from memecoin_promoter import promotion_registry


def new_promotion(**overrides):
    record = {
        "tokenAddress": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
        "plan": "Basic",
        "status": "Processing",
        "paymentSignature": "sig-1",
    }
    record.update(overrides)
    return promotion_registry.create_promotion(record)


def test_create_and_get(isolated_config):
    promo = new_promotion()
    assert (isolated_config / "promotions.json").exists()
    assert promo["createdAt"].endswith("Z")
    assert promotion_registry.get_promotion(promo["id"]) == promo
    assert promotion_registry.get_promotion(str(promo["id"])) == promo


def test_ids_are_unique():
    first = new_promotion(paymentSignature="a")
    second = new_promotion(paymentSignature="b")
    assert first["id"] != second["id"]
    assert [p["id"] for p in promotion_registry.list_promotions()] == sorted(
        [first["id"], second["id"]], reverse=True)


def test_update_promotion():
    promo = new_promotion()
    updated = promotion_registry.update_promotion(promo["id"], status="Success", postsCompleted=1)
    assert updated["status"] == "Success"
    assert "updatedAt" in updated
    assert promotion_registry.get_promotion(promo["id"])["postsCompleted"] == 1
    assert promotion_registry.update_promotion(12345, status="Success") is None


def test_find_by_signature():
    promo = new_promotion(paymentSignature="sig-xyz")
    assert promotion_registry.find_by_signature("sig-xyz")["id"] == promo["id"]
    assert promotion_registry.find_by_signature("other") is None
    assert promotion_registry.find_by_signature(None) is None


def test_corrupt_registry_is_kept_aside(isolated_config, caplog):
    (isolated_config / "promotions.json").write_text("garbage")
    with caplog.at_level("ERROR", logger="Registry"):
        assert promotion_registry.list_promotions() == []
    assert "not valid JSON" in caplog.text

    new_promotion()
    assert (isolated_config / "promotions.json.corrupt").read_text() == "garbage"
    assert len(promotion_registry.list_promotions()) == 1


def test_cli(capsys):
    assert promotion_registry.main([]) == 1
    assert promotion_registry.main(["list"]) == 0
    assert "No promotions recorded." in capsys.readouterr().out

    promo = new_promotion()
    assert promotion_registry.main(["list"]) == 0
    assert str(promo["id"]) in capsys.readouterr().out

    assert promotion_registry.main(["show", str(promo["id"])]) == 0
    assert '"plan": "Basic"' in capsys.readouterr().out
    assert promotion_registry.main(["show", "nope"]) == 1
    assert promotion_registry.main(["bogus"]) == 1
