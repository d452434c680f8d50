from farm_agents.agents_core.diagnosis import DiagnosisModel
from farm_world.catalog import DiseaseType


def test_healthy_field_confidence_follows_health():
    model = DiagnosisModel()

    assert model.diagnose(None, 60, 95).confidence == 95
    assert model.diagnose(None, 60, 75).confidence == 85
    assert model.diagnose(None, 60, 55).confidence == 70
    assert model.diagnose(None, 60, 20).confidence == 60
    assert model.diagnose(None, 60, 95).disease is None


def test_disease_confidence_by_symptoms():
    model = DiagnosisModel()

    assert model.diagnose(DiseaseType.APHIDS, 50, 60).confidence == 90
    assert model.diagnose(DiseaseType.FUNGAL_BLIGHT, 50, 55).confidence == 95
    assert model.diagnose(DiseaseType.ROOT_ROT, 50, 80).confidence == 60
    assert model.diagnose(DiseaseType.ROOT_ROT, 50, 40).confidence == 95


def test_training_bias_is_bounded():
    model = DiagnosisModel()

    assert model.train([(DiseaseType.APHIDS, True)] * 20) == 20
    assert model.diagnose(DiseaseType.APHIDS, 50, 60).confidence == 99

    model.train([(DiseaseType.ROOT_ROT, False)] * 30)
    assert model.diagnose(DiseaseType.ROOT_ROT, 50, 80).confidence == 50
    assert model.samples_seen == 50


def test_diagnosis_serializes_disease_name():
    diagnosis = DiagnosisModel().diagnose(DiseaseType.FUNGAL_BLIGHT, 50, 30)

    assert diagnosis.to_dict()['disease'] == 'FUNGAL_BLIGHT'
    assert diagnosis.explanation
