"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockbridge.config import ParserConfig
from blockbridge.parser.session import ParseSession


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def config():
    """Default configuration, isolated from any user config file or env var."""
    return ParserConfig(search=False, overrides={})


@pytest.fixture
def session(config):
    """Fresh parse session."""
    return ParseSession(config)


# =============================================================================
# SOURCE FIXTURES
# =============================================================================

RUST_SOURCE = '''
use std::collections::HashMap;
mod physics;

#[derive(Debug, Clone)]
pub struct Particle {
    pub position: (f32, f32),
    velocity: Vec<f32>,
}

impl Particle {
    pub fn new(x: f32, y: f32) -> Self {
        Particle { position: (x, y), velocity: Vec::new() }
    }

    fn speed(&self) -> f32 {
        let mut total = 0.0;
        for v in self.velocity.iter() {
            total += v * v;
        }
        total.sqrt()
    }
}

fn main() {
    let p = Particle::new(1.0, 2.0);
    println!("{}", p.speed());
}
'''

WGSL_SOURCE = '''
struct Params {
    count: u32,
    dt: f32,
}

@group(0) @binding(0) var<uniform> params: Params;
@group(0) @binding(1) var<storage, read_write> positions: array<vec2<f32>>;

fn wrap(x: f32) -> f32 {
    return fract(x);
}

@compute @workgroup_size(64)
fn main(@builtin(global_invocation_id) id: vec3<u32>) {
    let i = id.x;
    if (i >= params.count) {
        return;
    }
    for (var j = 0u; j < 4u; j++) {
        positions[i] = positions[i] + vec2<f32>(params.dt, 0.0);
    }
}
'''

BEVY_SOURCE = '''
use bevy::prelude::*;

#[derive(Component)]
struct Velocity {
    x: f32,
    y: f32,
}

#[derive(Resource, Default)]
struct Score(u32);

fn helper(a: f32) -> f32 {
    a * 2.0
}

fn move_system(mut query: Query<(&mut Transform, &Velocity)>, time: Res<Time>) {
    for (mut transform, velocity) in query.iter_mut() {
        transform.translation.x += velocity.x * time.delta_seconds();
    }
}

pub struct GamePlugin;

impl Plugin for GamePlugin {
    fn build(&self, app: &mut App) {
        app.add_systems(Update, move_system);
    }
}
'''

BIO_SOURCE = '''
use bevy::prelude::*;
use crate::genome::Genome;

// cell components
#[derive(Component, Debug)]
pub struct CellState {
    energy: f32,
}

#[derive(Component)]
pub struct Marker {
    id: u32,
}

pub fn signal_system(cells: Query<&CellState>) {
    for cell in cells.iter() {
        cell.emit_signal(SignalChannel::A, 0.5);
    }
    cell_genome.inject_genome(genome);
    forces.force += thrust * 2.0;
}

fn unrelated() {
    let x = 1;
}
'''


@pytest.fixture
def rust_source():
    return RUST_SOURCE


@pytest.fixture
def wgsl_source():
    return WGSL_SOURCE


@pytest.fixture
def bevy_source():
    return BEVY_SOURCE


@pytest.fixture
def bio_source():
    return BIO_SOURCE


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def types_of(nodes) -> list:
    """Block types of a node sequence."""
    return [n.type for n in nodes]


def find_node(nodes, block_type: str, name: str = None):
    """First node of a type (and NAME field, if given) anywhere in the trees."""
    from blockbridge.parser.nodes import walk_all
    for node in walk_all(nodes):
        if node.type == block_type and (name is None or node.fields.get("NAME") == name):
            return node
    return None
