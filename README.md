# arcontroller

Building blocks for managing a fleet of self-hosted CI runners. It covers
the reconciliation logic that keeps runner replica sets in line with their
deployments. It matches schedules for recurring capacity overrides. It
provides label and template-hash helpers and cleans up volumes for stateful
runners. It adds logging and rate-limit instrumentation to API transports.
It also includes a small tool that signs release assets.

## Installation

```
pip install .
```

For the test suite:

```
pip install .[test]
pytest
```

## What is inside

- `arcontroller.schedule`
  - `match_schedule(now, start_time, end_time, recurrence_rule)` returns a pair: the active `Period` and the upcoming `Period`. Either may be `None`.
  - The override is described by a `RecurrenceRule`. It is one-time when the frequency is empty. Otherwise the frequency is one of `"Daily"`, `"Weekly"`, `"Monthly"` or `"Yearly"`, with an optional `until_time`.
  - An unknown frequency raises `ScheduleError`, and so does an override longer than its frequency.
  - `str(period)` gives `START-END` in RFC 3339 form.
- `arcontroller.labels`
  - `clone_and_add_label`, `clone_selector_and_add_label` and `filter_labels` work with label maps and selectors without changing the originals.
  - `compute_hash`, `deep_hash_object`, `fnv_hash_string_objects` and `safe_encode_string` produce stable template hashes. A hash is an FNV-1a value over a canonical JSON rendering, encoded in a vowel-free alphabet.
- `arcontroller.kube`
  - `InMemoryClient` is an object store keyed by kind and `ObjectKey`. It has `get`, `list`, `create`, `update`, `delete` and `patch_status`.
  - `list` can filter by namespace, by label selector and by the owning controller's name.
  - `create` fills in a name from `generateName` and a creation timestamp.
  - A missing object raises `NotFoundError`.
  - Reconcilers return a `Result` that says whether and when to requeue.
- `arcontroller.runnerdeployment`
  - `RunnerDeploymentReconciler.reconcile(namespace, name)` creates a new runner replica set whenever the runner template changes.
  - It updates the newest set in place when the selector, the replica count or the effective time changes.
  - Once the newest set is fully ready, it scales old sets to zero and then deletes them. Each deletion is recorded in `events`.
  - It keeps the deployment's status up to date.
  - `new_runner_replica_set`, `get_selector`, `get_template_hash` and `get_int_or_default` can be used on their own.
- `arcontroller.volumes`
  - `sync_volumes` labels persistent volume claims with the stateful set they belong to.
  - `sync_pvc` handles a claim whose stateful set is gone: it marks the claim's volume for cleanup and deletes the claim.
  - `sync_pv` unsets the claim reference of a released, marked volume so the volume can be reused.
- `arcontroller.logsetup`
  - `new_logger` accepts `debug`, `info`, `warn`, `error` or a signed integer level. `parse_log_level` does the parsing and raises `ValueError` on anything else.
  - `LoggingTransport` wraps another transport and logs each response. The log line includes the remaining rate limit when the response was not served from cache, and the full round trip at the most verbose levels.
- `arcontroller.ratelimit`
  - `MetricsTransport` wraps another transport. It records the `X-RateLimit-Limit` and `X-RateLimit-Remaining` response headers into the module's `RATE_LIMIT` and `RATE_LIMIT_REMAINING` `Gauge` objects.
  - `parse_response` does the same for a bare header mapping.
- `arcontroller.fakegithub`
  - `RunnersList` is an in-process fake of the runners API for tests.
  - You can add runners, `sync` them (online, ids from 0) or `add_offline` (ids from 1000), then list and remove them.
  - `serve()` serves them over HTTP on a local port. The server is a context manager.

## Signing release assets

The `signrel` command downloads the assets of a release and signs every
asset that has no detached signature yet with `gpg`. It then uploads the
`.asc` signatures back to the release.

```
signrel tags
```

prints the JSON listing of the repository's releases.

```
TAG=v0.1.0 signrel sign
```

downloads the assets of the given tag into `downloads/<tag>/`, signs them and
uploads the signatures. An already uploaded signature is reported and
skipped.

Environment variables:

- `TAG`: the release tag for `sign`.
- `GITHUB_TOKEN`: sent as a token in the authorization header when set.
- `SIGNREL_PASSWORD`: the passphrase handed to `gpg`.

Exit statuses:

- Given no argument, or more than one, the command prints the arguments it got and its usage, and exits with status 2.
- Given an unknown command, it says so and exits with status 2.
- Failures exit with status 1.

## What it does not do

- The package does not talk to a real cluster. The reconciler and the volume helpers work against `InMemoryClient` only.
- There is no long-running controller process, leader election, admission webhook or metrics endpoint.
- Only runner deployments are reconciled. There is no reconciler for individual runners, runner replica sets, runner sets, pods or autoscalers.
- There is no client for the runner registration API.