"""Tests for delivery plan selection.

Covers:
- select_plan: all six plans from contact availability
- Forced channels: override detection, refuse missing contact fields
- describe(): the channel preview payload
"""
from itertools import product

from django.test import SimpleTestCase

from messaging.exceptions import PlanOverrideError
from messaging.notifications.plan import (
    DUAL, EMAIL_ONLY, EMAIL_SMS, NO_CONTACT, SMS_ONLY, WHATSAPP_ONLY, describe, select_plan,
)


class SelectPlanTest(SimpleTestCase):

    def test_whatsapp_and_email_is_dual(self):
        self.assertIs(select_plan(True, True, True), DUAL)

    def test_whatsapp_without_email(self):
        self.assertIs(select_plan(True, True, False), WHATSAPP_ONLY)

    def test_phone_without_whatsapp_and_email(self):
        self.assertIs(select_plan(True, False, True), EMAIL_SMS)

    def test_email_only(self):
        self.assertIs(select_plan(False, False, True), EMAIL_ONLY)

    def test_phone_only_cannot_carry_ticket(self):
        plan = select_plan(True, False, False)
        self.assertIs(plan, SMS_ONLY)
        self.assertFalse(plan.is_deliverable)
        self.assertIsNone(plan.channel_used)
        self.assertIn('SMS cannot deliver the ticket PDF', plan.error)

    def test_no_contact(self):
        plan = select_plan(False, False, False)
        self.assertIs(plan, NO_CONTACT)
        self.assertEqual(plan.error, 'Booking has no phone number or email address')

    def test_whatsapp_flag_ignored_without_phone(self):
        self.assertIs(select_plan(False, True, True), EMAIL_ONLY)

    def test_every_deliverable_plan_carries_a_ticket(self):
        for plan in (DUAL, WHATSAPP_ONLY, EMAIL_SMS, EMAIL_ONLY):
            with self.subTest(plan=plan.kind):
                self.assertTrue(plan.pdf_supported)

    def test_sms_is_notification_only(self):
        sms_step = EMAIL_SMS.steps[1]
        self.assertEqual(sms_step.channel, 'sms')
        self.assertFalse(sms_step.carries_ticket)
        self.assertFalse(EMAIL_SMS.is_dual_delivery)
        self.assertTrue(DUAL.is_dual_delivery)


class ForcedPlanTest(SimpleTestCase):

    def test_force_whatsapp_skips_capability(self):
        self.assertIs(select_plan(True, False, True, force='whatsapp'), WHATSAPP_ONLY)

    def test_force_email_sms(self):
        self.assertIs(select_plan(True, True, True, force='email_sms'), EMAIL_SMS)

    def test_force_dual_requires_email(self):
        with self.assertRaisesMessage(PlanOverrideError, "Cannot force 'dual': booking has no email"):
            select_plan(True, True, False, force='dual')

    def test_force_whatsapp_requires_phone(self):
        with self.assertRaises(PlanOverrideError):
            select_plan(False, False, True, force='whatsapp')

    def test_unknown_force_raises(self):
        with self.assertRaises(ValueError):
            select_plan(True, True, True, force='carrier_pigeon')


class DescribeTest(SimpleTestCase):

    def test_dual_description(self):
        self.assertEqual(describe(DUAL), {
            'primary': 'whatsapp',
            'fallback': 'email',
            'description': 'Will send via WhatsApp + Email',
            'pdf_supported': True,
            'is_dual_delivery': True,
            'channels': ['whatsapp', 'email'],
            'error': None,
        })

    def test_no_contact_description(self):
        data = describe(NO_CONTACT)
        self.assertIsNone(data['primary'])
        self.assertIsNone(data['fallback'])
        self.assertFalse(data['pdf_supported'])
        self.assertEqual(data['channels'], [])


class PlanTotalityTest(SimpleTestCase):

    def test_every_contact_combination_maps_to_a_known_plan(self):
        known = {DUAL, WHATSAPP_ONLY, EMAIL_SMS, EMAIL_ONLY, SMS_ONLY, NO_CONTACT}
        for has_phone, has_whatsapp, has_email in product((True, False), repeat=3):
            with self.subTest(phone=has_phone, whatsapp=has_whatsapp, email=has_email):
                self.assertIn(select_plan(has_phone, has_whatsapp, has_email), known)
