import pytest
from sqlalchemy.exc import IntegrityError

from clinic_backend.core.errors import InvalidReferenceError
from clinic_backend.models.specialty import DoctorSpecialty
from clinic_backend.services import specialty_reconciler
from clinic_backend.services.specialty_reconciler import (
    add_specialties,
    doctor_specialty_ids,
    reconcile_specialties,
    remove_specialties,
)


@pytest.fixture
def specialties(make_specialty):
    return {title: make_specialty(title).id for title in ('Cardiology', 'Neurology', 'Dermatology', 'Oncology')}


def test_reconcile_yields_current_minus_removed_plus_added(db, make_doctor, specialties) -> None:
    doctor = make_doctor()
    add_specialties(db, doctor.id, [specialties['Cardiology'], specialties['Neurology']])
    db.commit()

    reconcile_specialties(
        db,
        doctor.id,
        add_ids={specialties['Dermatology'], specialties['Oncology']},
        remove_ids={specialties['Neurology']},
    )
    db.commit()

    assert doctor_specialty_ids(db, doctor.id) == {
        specialties['Cardiology'],
        specialties['Dermatology'],
        specialties['Oncology'],
    }


def test_adding_twice_matches_adding_once(db, make_doctor, specialties) -> None:
    doctor = make_doctor()
    add_ids = {specialties['Cardiology'], specialties['Oncology']}

    reconcile_specialties(db, doctor.id, add_ids=add_ids)
    db.commit()
    once = doctor_specialty_ids(db, doctor.id)

    reconcile_specialties(db, doctor.id, add_ids=add_ids)
    db.commit()

    assert doctor_specialty_ids(db, doctor.id) == once == add_ids


def test_removing_a_specialty_not_held_fails_and_changes_nothing(db, make_doctor, specialties) -> None:
    doctor = make_doctor()
    add_specialties(db, doctor.id, [specialties['Cardiology']])
    db.commit()

    with pytest.raises(InvalidReferenceError) as exception_info:
        reconcile_specialties(
            db,
            doctor.id,
            remove_ids={specialties['Cardiology'], specialties['Neurology']},
        )
    db.rollback()

    assert exception_info.value.ids == [specialties['Neurology']]
    assert doctor_specialty_ids(db, doctor.id) == {specialties['Cardiology']}


def test_unknown_specialties_are_all_reported(db, make_doctor, specialties) -> None:
    doctor = make_doctor()

    with pytest.raises(InvalidReferenceError) as exception_info:
        reconcile_specialties(db, doctor.id, add_ids={specialties['Cardiology'], 'missing-b', 'missing-a'})
    db.rollback()

    assert exception_info.value.ids == ['missing-a', 'missing-b']
    assert exception_info.value.detail['entity'] == 'specialty'
    assert doctor_specialty_ids(db, doctor.id) == set()


def test_invalid_addition_is_detected_before_removal_is_applied(db, make_doctor, specialties) -> None:
    doctor = make_doctor()
    add_specialties(db, doctor.id, [specialties['Cardiology']])
    db.commit()

    with pytest.raises(InvalidReferenceError):
        reconcile_specialties(db, doctor.id, add_ids={'missing'}, remove_ids={specialties['Cardiology']})

    assert doctor_specialty_ids(db, doctor.id) == {specialties['Cardiology']}


def test_id_in_both_sets_ends_up_held(db, make_doctor, specialties) -> None:
    doctor = make_doctor()
    add_specialties(db, doctor.id, [specialties['Cardiology']])
    db.commit()

    reconcile_specialties(
        db,
        doctor.id,
        add_ids={specialties['Cardiology']},
        remove_ids={specialties['Cardiology']},
    )
    db.commit()

    assert doctor_specialty_ids(db, doctor.id) == {specialties['Cardiology']}


def test_empty_sets_are_a_no_op(db, make_doctor) -> None:
    doctor = make_doctor()

    reconcile_specialties(db, doctor.id)

    assert add_specialties(db, doctor.id, []) == 0
    assert remove_specialties(db, doctor.id, []) == 0
    assert doctor_specialty_ids(db, doctor.id) == set()


def test_remove_specialties_deletes_held_links(db, make_doctor, specialties) -> None:
    doctor = make_doctor()
    add_specialties(db, doctor.id, [specialties['Cardiology'], specialties['Neurology']])
    db.commit()

    removed = remove_specialties(db, doctor.id, [specialties['Neurology']])
    db.commit()

    assert removed == 1
    assert doctor_specialty_ids(db, doctor.id) == {specialties['Cardiology']}


def test_racing_specialty_link_is_treated_as_already_present(db, make_doctor, specialties, monkeypatch) -> None:
    doctor_id = make_doctor().id
    add_specialties(db, doctor_id, [specialties['Cardiology']])
    db.commit()
    db.expunge_all()
    # The other request commits its link after this one has read the held set.
    monkeypatch.setattr(specialty_reconciler, '_held_links', lambda db, doctor_id, specialty_ids: [])

    created = add_specialties(db, doctor_id, [specialties['Cardiology'], specialties['Neurology']])
    db.commit()

    assert created == 1
    assert doctor_specialty_ids(db, doctor_id) == {specialties['Cardiology'], specialties['Neurology']}


def test_adding_specialties_to_a_missing_doctor_fails(db, specialties) -> None:
    with pytest.raises(IntegrityError):
        add_specialties(db, 'no-such-doctor', [specialties['Cardiology']])

    db.rollback()
    assert db.query(DoctorSpecialty).count() == 0
