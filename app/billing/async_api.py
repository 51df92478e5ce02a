"""
Async facade over BillingService.

ASGI views and other coroutines await these instead of calling the
synchronous service directly. Each call runs in Django's thread-sensitive
executor so database connections stay on the thread that owns them.

Usage:
    from billing import async_api

    patient_id = await async_api.create_patient_with_treatment(patient, treatment)
    await async_api.apply_patient_payment(patient_id, "600")
"""

from asgiref.sync import sync_to_async

from .services import BillingService


def _wrap(method):
    return sync_to_async(method, thread_sensitive=True)


create_patient_with_treatment = _wrap(BillingService.create_patient_with_treatment)
add_treatment = _wrap(BillingService.add_treatment)
record_treatment_payment = _wrap(BillingService.record_treatment_payment)
apply_patient_payment = _wrap(BillingService.apply_patient_payment)
delete_treatment = _wrap(BillingService.delete_treatment)
delete_patient = _wrap(BillingService.delete_patient)

get_patient = _wrap(BillingService.get_patient)
get_treatment = _wrap(BillingService.get_treatment)
get_patient_with_treatments = _wrap(BillingService.get_patient_with_treatments)
list_treatments_for_patient = _wrap(BillingService.list_treatments_for_patient)
list_all_treatments = _wrap(BillingService.list_all_treatments)
list_all_patients = _wrap(BillingService.list_all_patients)
